"""
Centralized path management for obs-index.

Resolves where the tool keeps its own configuration. Index output
paths live inside the vault and are resolved by ``obs_index.core.config``.
"""

import os
import sys
from pathlib import Path
from typing import Optional
import logging


class PathManager:
    """Manages obs-index file paths."""

    # Directory names
    APP_DIR_NAME = "obs-index"
    HOME_ENV_VAR = "OBS_INDEX_HOME"

    # File names
    CONFIG_FILE = "config.json"

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize path manager."""
        self.logger = logger or logging.getLogger(__name__)
        self._working_dir: Optional[Path] = None

    def _default_user_dir(self) -> Path:
        """Platform-appropriate per-user data directory."""
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / self.APP_DIR_NAME
        if sys.platform.startswith("win"):
            appdata = os.environ.get("APPDATA")
            if appdata:
                return Path(appdata) / self.APP_DIR_NAME
            return Path.home() / "AppData" / "Roaming" / self.APP_DIR_NAME
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return Path(xdg_config).expanduser() / self.APP_DIR_NAME
        return Path.home() / ".config" / self.APP_DIR_NAME

    @property
    def working_dir(self) -> Path:
        """
        Get the working directory for obs-index data.

        Priority order:
        1. OBS_INDEX_HOME environment variable (explicit override)
        2. Platform user configuration directory
        """
        if self._working_dir is not None:
            return self._working_dir

        env_override = os.environ.get(self.HOME_ENV_VAR)
        if env_override:
            env_path = Path(env_override).expanduser().resolve()
            self.logger.debug(f"Using {self.HOME_ENV_VAR} override: {env_path}")
            self._working_dir = env_path
        else:
            self._working_dir = self._default_user_dir()
        return self._working_dir

    @property
    def config_path(self) -> Path:
        """Get the configuration file path."""
        return self.working_dir / self.CONFIG_FILE

    def ensure_directories(self) -> None:
        """Ensure the working directory exists."""
        self.working_dir.mkdir(parents=True, exist_ok=True)
        self.logger.debug(f"Ensured directory exists: {self.working_dir}")


_path_manager: Optional[PathManager] = None


def get_path_manager() -> PathManager:
    """Return the process-wide PathManager."""
    global _path_manager
    if _path_manager is None:
        _path_manager = PathManager()
    return _path_manager


def reset_path_manager() -> None:
    """Forget the cached PathManager (used when OBS_INDEX_HOME changes)."""
    global _path_manager
    _path_manager = None
