"""Open command - show the index file in the system viewer."""

import logging
import os
import subprocess
import sys

from ..core.config import IndexConfig
from .rebuild import create_index_service, load_vault_source


class OpenCommand:
    """Command for ensuring the index file exists and opening it."""

    def __init__(self, config: IndexConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.logger = logging.getLogger(__name__)

    def run(self, print_only: bool = False) -> bool:
        source = load_vault_source(self.config)
        if source is None:
            return False

        service = create_index_service(self.config, source)
        try:
            path = service.open_index_file()
        except OSError as exc:
            print(f"❌ Could not create index file: {exc}")
            return False
        finally:
            service.dispose()

        print(path)
        if print_only:
            return True
        return self._launch(path)

    def _launch(self, path: str) -> bool:
        try:
            if sys.platform.startswith("win"):
                os.startfile(path)  # type: ignore[attr-defined]
            elif sys.platform == "darwin":
                subprocess.run(["open", path], check=True)
            else:
                subprocess.run(["xdg-open", path], check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            self.logger.error("Could not open %s: %s", path, exc)
            print(f"❌ Could not open {path}: {exc}")
            return False
        return True
