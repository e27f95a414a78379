"""
Output path resolution for the index snapshot.
"""

import logging
from typing import Optional

from ..core.config import IndexSettings, resolve_output_path
from ..core.exceptions import NotInitializedError
from ..core.models import PathTransition
from ..storage.adapter import FileAdapter, parent_of


class OutputPathResolver:
    """Tracks the active output path and prepares its directory."""

    def __init__(self, adapter: FileAdapter, logger: Optional[logging.Logger] = None):
        self.adapter = adapter
        self.logger = logger or logging.getLogger(__name__)
        self._current_path: Optional[str] = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self, settings: IndexSettings) -> None:
        """
        Resolve the output path, create its folder and probe writability.

        A failed probe is only logged; the write path has its own retries.
        """
        path = resolve_output_path(settings)
        folder = parent_of(path)
        self.adapter.ensure_directory(folder)

        probe = self.adapter.test_writability(folder)
        if not probe.ok:
            self.logger.warning(
                f"Index probe write failed for '{path}' "
                f"(retryable={probe.retryable}): {probe.message}"
            )

        self._current_path = path
        self._initialized = True

    def reinitialize(self, settings: IndexSettings) -> PathTransition:
        next_path = resolve_output_path(settings)
        old_path = self._current_path
        path_changed = old_path is not None and old_path != next_path

        if not self._initialized or old_path != next_path:
            self.initialize(settings)
        else:
            self.adapter.ensure_directory(parent_of(next_path))

        if path_changed:
            self.logger.info(f"Index output path changed: {old_path} -> {next_path}")

        return PathTransition(
            path_changed=path_changed,
            old_path=old_path,
            new_path=self.get_current_path(),
            requires_rebuild=path_changed,
        )

    def get_current_path(self) -> str:
        if not self._current_path:
            raise NotInitializedError("Index output path is not initialized")
        return self._current_path

    def dispose(self) -> None:
        self._current_path = None
        self._initialized = False
