"""
In-memory index state and change detection.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from ..core.models import NormalizedTask
from .normalizer import TaskNormalizer, hash_text
from .writer import SerializedRows, serialize_tasks


class IndexStore:
    """
    Per-path rows, hashes and serialized lines of the current index.

    All three maps always hold the same set of paths; a path whose task
    list is empty is not stored at all.
    """

    def __init__(self, normalizer: Optional[TaskNormalizer] = None, logger: Optional[logging.Logger] = None):
        self.normalizer = normalizer or TaskNormalizer()
        self.logger = logger or logging.getLogger(__name__)
        self.index_by_path: Dict[str, List[NormalizedTask]] = {}
        self.path_hashes: Dict[str, str] = {}
        self.serialized_by_path: Dict[str, List[str]] = {}
        self.serialization_errors: Dict[str, str] = {}
        self.skipped_rows: Dict[str, int] = {}

    def clear(self) -> None:
        self.index_by_path.clear()
        self.path_hashes.clear()
        self.serialized_by_path.clear()
        self.serialization_errors.clear()
        self.skipped_rows.clear()

    def apply_full_rebuild(self, by_path: Mapping[str, Sequence[NormalizedTask]]) -> None:
        """Replace the whole index with ``by_path``."""
        self.clear()
        for path, tasks in by_path.items():
            if tasks:
                self._set_path(path, list(tasks), self.normalizer.hash_tasks_for_path(tasks))

    def apply_incremental(self, path: str, tasks: Optional[Sequence[NormalizedTask]]) -> bool:
        """
        Update one path.

        ``None`` or an empty list removes the path. Returns False when the
        path's hash is unchanged, True when the stored state changed.
        """
        if not tasks:
            return self.remove_path(path)

        next_hash = self.normalizer.hash_tasks_for_path(tasks)
        if self.path_hashes.get(path) == next_hash:
            return False

        self._set_path(path, list(tasks), next_hash)
        return True

    def remove_path(self, path: str) -> bool:
        existed = path in self.path_hashes or path in self.index_by_path
        self.index_by_path.pop(path, None)
        self.path_hashes.pop(path, None)
        self.serialized_by_path.pop(path, None)
        self.serialization_errors.pop(path, None)
        self.skipped_rows.pop(path, None)
        return existed

    def _set_path(self, path: str, tasks: List[NormalizedTask], path_hash: str) -> None:
        rows: SerializedRows = serialize_tasks(tasks, self.logger)
        self.index_by_path[path] = tasks
        self.path_hashes[path] = path_hash
        self.serialized_by_path[path] = rows.lines
        if rows.skipped:
            self.skipped_rows[path] = rows.skipped
            self.serialization_errors[path] = rows.error or "Failed to serialize task row"
        else:
            self.skipped_rows.pop(path, None)
            self.serialization_errors.pop(path, None)

    # ------------------------------------------------------------------
    # Snapshot views
    # ------------------------------------------------------------------
    def sorted_paths(self) -> List[str]:
        return sorted(self.serialized_by_path)

    def collect_lines(self) -> List[str]:
        lines: List[str] = []
        for path in self.sorted_paths():
            lines.extend(self.serialized_by_path[path])
        return lines

    @property
    def task_count(self) -> int:
        return sum(len(lines) for lines in self.serialized_by_path.values())

    @property
    def file_count(self) -> int:
        return len(self.path_hashes)

    @property
    def skipped_count(self) -> int:
        return sum(self.skipped_rows.values())

    def sorted_path_hashes(self) -> Dict[str, str]:
        return {path: self.path_hashes[path] for path in sorted(self.path_hashes)}

    def index_hash(self) -> str:
        pairs = [f"{path}:{path_hash}" for path, path_hash in self.sorted_path_hashes().items()]
        return hash_text("\n".join(pairs))

    def first_serialization_error(self) -> Optional[str]:
        for path in sorted(self.serialization_errors):
            return self.serialization_errors[path]
        return None
