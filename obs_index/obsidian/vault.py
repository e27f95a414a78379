"""Task source backed by the markdown files of an Obsidian vault."""

import logging
import os
import threading
from typing import Dict, Iterable, List, Optional

from ..core.config import DEFAULT_IGNORE_DIRS, normalize_relative_path
from ..core.exceptions import VaultNotFoundError
from ..core.models import Task
from .frontmatter import parse_frontmatter_task
from .parser import parse_task_line


MARKDOWN_SUFFIX = ".md"
FENCE_PREFIXES = ("```", "~~~")


def parse_note(text: str, rel_path: str) -> List[Task]:
    """Return the file-level task (if any) followed by the checkbox tasks of a note."""
    tasks: List[Task] = []

    file_task = parse_frontmatter_task(text, rel_path)
    if file_task is not None:
        tasks.append(file_task)

    in_fence = False
    for index, line in enumerate(text.splitlines()):
        if line.lstrip().startswith(FENCE_PREFIXES):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        task = parse_task_line(line, rel_path, index)
        if task is not None:
            tasks.append(task)
    return tasks


class VaultTaskSource:
    """Parses and caches the tasks of every note in a vault.

    The cache is keyed by vault-relative path; ``refresh_path`` and
    ``remove_path`` keep it current as the watcher reports changes.
    """

    def __init__(
        self,
        vault_path: str,
        ignore_dirs: Optional[Iterable[str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.vault_path = os.path.abspath(os.path.expanduser(vault_path))
        self.ignore_dirs = set(DEFAULT_IGNORE_DIRS if ignore_dirs is None else ignore_dirs)
        self.logger = logger or logging.getLogger(__name__)
        self._cache: Dict[str, List[Task]] = {}
        self._lock = threading.Lock()
        self._loaded = False

    def load(self) -> int:
        """Scan the whole vault. Returns the number of tasks found."""
        if not os.path.isdir(self.vault_path):
            raise VaultNotFoundError(f"Vault not found: {self.vault_path}")

        cache: Dict[str, List[Task]] = {}
        for root, dirs, files in os.walk(self.vault_path):
            dirs[:] = sorted(d for d in dirs if d not in self.ignore_dirs)
            for filename in files:
                if not filename.endswith(MARKDOWN_SUFFIX):
                    continue
                rel_path = self.relative_path(os.path.join(root, filename))
                if rel_path is None:
                    continue
                tasks = self._parse_file(rel_path)
                if tasks:
                    cache[rel_path] = tasks

        with self._lock:
            self._cache = cache
            self._loaded = True

        count = sum(len(tasks) for tasks in cache.values())
        self.logger.debug(f"Scanned {self.vault_path}: {count} tasks in {len(cache)} files")
        return count

    def get_tasks(self) -> List[Task]:
        if not self._loaded:
            self.load()
        with self._lock:
            return [task for path in sorted(self._cache) for task in self._cache[path]]

    def relative_path(self, path: str) -> Optional[str]:
        """Vault-relative form of ``path`` or None when it lies outside the vault."""
        absolute = path if os.path.isabs(path) else os.path.join(self.vault_path, path)
        rel_path = os.path.relpath(os.path.abspath(absolute), self.vault_path)
        rel_path = normalize_relative_path(rel_path.replace(os.sep, "/"))
        if not rel_path or rel_path == ".." or rel_path.startswith("../"):
            return None
        return rel_path

    def is_tracked(self, rel_path: str) -> bool:
        if not rel_path.endswith(MARKDOWN_SUFFIX):
            return False
        return not any(part in self.ignore_dirs for part in rel_path.split("/")[:-1])

    def refresh_path(self, path: str) -> List[Task]:
        """Re-read one note; a missing note is dropped from the cache."""
        rel_path = normalize_relative_path(path)
        if not os.path.isfile(os.path.join(self.vault_path, rel_path)):
            self.remove_path(rel_path)
            return []

        tasks = self._parse_file(rel_path)
        with self._lock:
            if tasks:
                self._cache[rel_path] = tasks
            else:
                self._cache.pop(rel_path, None)
        return tasks

    def remove_path(self, path: str) -> bool:
        with self._lock:
            return self._cache.pop(normalize_relative_path(path), None) is not None

    def _parse_file(self, rel_path: str) -> List[Task]:
        full_path = os.path.join(self.vault_path, rel_path)
        try:
            with open(full_path, "r", encoding="utf-8") as handle:
                text = handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            self.logger.error("Error reading %s: %s", rel_path, exc)
            return []
        return parse_note(text, rel_path)
