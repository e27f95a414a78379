"""
Index service: change scheduling and the normalize/store/write pipeline.

Change notifications are coalesced behind a debounce timer. The first flush
(or any flush before an initial build) performs a full rebuild; later flushes
only re-normalize the paths that changed and write when a path hash moved.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Set

from .. import __version__
from ..core.config import IndexConfig, normalize_relative_path, resolve_output_path
from ..core.exceptions import WriteFailure
from ..core.models import IndexMeta, Task
from ..storage.adapter import FileAdapter
from ..storage.filesystem import DurableFileSystem
from .normalizer import NormalizerOptions, TaskNormalizer
from .output import OutputPathResolver
from .store import IndexStore
from .timers import ThreadingTimer, Timer
from .writer import INDEX_SCHEMA_VERSION, SnapshotWriter, WriteBackoff


FAILURE_NOTICE = "obs-index: failed to write the task index."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IndexService:
    """Keeps the on-disk task index in step with a task source."""

    def __init__(
        self,
        fs: DurableFileSystem,
        get_tasks: Callable[[], Iterable[Task]],
        config: IndexConfig,
        version: str = __version__,
        *,
        timer_factory: Callable[[str], Timer] = ThreadingTimer,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utc_now,
        notify: Optional[Callable[[str], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.get_tasks = get_tasks
        self.config = config
        self.version = version

        self.adapter = FileAdapter(fs, sleep=sleep)
        self.resolver = OutputPathResolver(self.adapter)
        self.writer = SnapshotWriter(self.adapter)
        self.normalizer = TaskNormalizer()
        self.store = IndexStore(self.normalizer)
        self.backoff = WriteBackoff(clock=clock)

        self._now = now
        self._notify = notify or self.logger.warning
        self._debounce_timer = timer_factory("obs-index-debounce")
        self._retry_timer = timer_factory("obs-index-retry")

        self._pending_lock = threading.Lock()
        self._pipeline_lock = threading.RLock()
        self._pending_paths: Set[str] = set()
        self._pending_deletes: Set[str] = set()

        self._initialized = False
        self._last_error: Optional[str] = None
        self._signature = config.signature(version)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def enabled(self) -> bool:
        return self.config.index.enabled

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def pending_paths(self) -> Set[str]:
        with self._pending_lock:
            return set(self._pending_paths)

    @property
    def pending_deletes(self) -> Set[str]:
        with self._pending_lock:
            return set(self._pending_deletes)

    @property
    def output_path(self) -> str:
        return resolve_output_path(self.config.index)

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------
    def schedule_path(self, path: str) -> None:
        """Mark ``path`` as changed and (re)start the debounce timer."""
        if not self.enabled:
            return
        path = normalize_relative_path(path)
        with self._pending_lock:
            self._pending_deletes.discard(path)
            self._pending_paths.add(path)
            self._debounce_timer.arm(self.config.index.debounce_seconds, self._on_debounce)

    def schedule_delete_path(self, path: str) -> None:
        """Mark ``path`` as deleted and (re)start the debounce timer."""
        if not self.enabled:
            return
        path = normalize_relative_path(path)
        with self._pending_lock:
            self._pending_paths.discard(path)
            self._pending_deletes.add(path)
            self._debounce_timer.arm(self.config.index.debounce_seconds, self._on_debounce)

    def _on_debounce(self) -> None:
        try:
            self.flush_pending()
        except Exception:
            self.logger.exception("Index flush failed")

    def _take_pending(self):
        with self._pending_lock:
            deleted = sorted(self._pending_deletes)
            changed = sorted(self._pending_paths)
            self._pending_deletes.clear()
            self._pending_paths.clear()
        return deleted, changed

    def _clear_pending(self) -> None:
        with self._pending_lock:
            self._pending_paths.clear()
            self._pending_deletes.clear()
            self._debounce_timer.cancel()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def flush_pending(self) -> bool:
        """
        Process pending changes now.

        Returns True when a snapshot was written successfully.
        """
        if not self.enabled:
            self._clear_pending()
            return False

        with self._pipeline_lock:
            # Events that arrive before the first build are folded into a rebuild
            if not self._initialized:
                return self.rebuild_all()

            deleted, changed = self._take_pending()
            if not deleted and not changed:
                return False

            snapshot_at = self._now()
            options = NormalizerOptions.from_config(self.config, snapshot_at)
            has_change = False

            for path in deleted:
                if self.store.remove_path(path):
                    has_change = True

            deleted_set = set(deleted)
            remaining = [path for path in changed if path not in deleted_set]
            if remaining:
                by_file = self._tasks_by_file(remaining)
                for path in remaining:
                    normalized = self.normalizer.normalize_tasks(by_file.get(path, []), options)
                    if self.store.apply_incremental(path, normalized.get(path, [])):
                        has_change = True

            if not has_change:
                self.logger.debug(f"No index changes for {len(changed) + len(deleted)} path(s)")
                return False
            return self._write_snapshot(snapshot_at)

    def rebuild_all(self) -> bool:
        """Normalize every task from scratch and write a full snapshot."""
        if not self.enabled:
            return False

        self._clear_pending()
        with self._pipeline_lock:
            snapshot_at = self._now()
            options = NormalizerOptions.from_config(self.config, snapshot_at)
            by_path = self.normalizer.normalize_tasks(self.get_tasks(), options)
            self.store.apply_full_rebuild(by_path)
            self._initialized = True
            self.logger.info(
                f"Rebuilt index: {self.store.task_count} tasks in {self.store.file_count} files"
            )
            return self._write_snapshot(snapshot_at)

    def _tasks_by_file(self, paths: List[str]):
        wanted = set(paths)
        grouped = {}
        for task in self.get_tasks():
            path = normalize_relative_path(task.file)
            if path in wanted:
                grouped.setdefault(path, []).append(task)
        return grouped

    def _write_snapshot(self, snapshot_at: datetime) -> bool:
        with self._pipeline_lock:
            if self.backoff.in_window():
                self.logger.warning(
                    f"Skipping index write during backoff window ({self.backoff.remaining():.2f}s remaining)"
                )
                self._schedule_retry_write()
                return False

            meta = IndexMeta(
                version=INDEX_SCHEMA_VERSION,
                plugin_version=self.version,
                generated_at=snapshot_at.isoformat(),
                task_count=self.store.task_count,
                file_count=self.store.file_count,
                index_hash=self.store.index_hash(),
                path_hashes=self.store.sorted_path_hashes(),
                last_error=self.store.first_serialization_error(),
            )

            try:
                output_path = self._sync_output_path()
                self.writer.write(
                    self.store.collect_lines(),
                    meta,
                    output_path,
                    create_backup=self.config.index.create_backup,
                )
            except (WriteFailure, OSError) as exc:
                self._record_failure(exc)
                return False

            self._reset_failure_state()
            self._last_error = meta.last_error
            self.logger.debug(f"Wrote index snapshot to {output_path} ({meta.task_count} tasks)")
            return True

    def _record_failure(self, exc: Exception) -> None:
        if isinstance(exc, WriteFailure):
            message = str(exc)
        else:
            message = f"Failed to write index: {exc}"
        self._last_error = message

        delay = self.backoff.record_failure()
        self.logger.error(
            f"{message} (failure {self.backoff.failures}, next attempt in {delay:.2f}s)"
        )
        if self.backoff.should_notify():
            self._notify(FAILURE_NOTICE)
        self._schedule_retry_write()

    def _schedule_retry_write(self) -> None:
        if not self.enabled:
            return
        self._retry_timer.arm(self.backoff.remaining(), self._on_retry)

    def _on_retry(self) -> None:
        if not self.enabled:
            return
        try:
            self._write_snapshot(self._now())
        except Exception:
            self.logger.exception("Index retry write failed")

    def _reset_failure_state(self, clear_notice: bool = False) -> None:
        self.backoff.reset(clear_notice=clear_notice)
        self._retry_timer.cancel()

    def _sync_output_path(self) -> str:
        return self.resolver.reinitialize(self.config.index).new_path

    # ------------------------------------------------------------------
    # Settings and lifecycle
    # ------------------------------------------------------------------
    def update_settings(self, config: Optional[IndexConfig] = None) -> bool:
        """
        Apply a new configuration.

        Returns False when nothing that affects the index changed. Otherwise
        pending work is dropped; disabling tears down the output path, any
        other change re-resolves it and rebuilds an already-built index.
        """
        if config is not None:
            self.config = config

        signature = self.config.signature(self.version)
        if signature == self._signature:
            return False
        self._signature = signature

        self._clear_pending()
        if not self.enabled:
            with self._pipeline_lock:
                self._initialized = False
                self._reset_failure_state(clear_notice=True)
                self.resolver.dispose()
            return True

        try:
            self._sync_output_path()
        except OSError as exc:
            self.logger.error(f"Failed to prepare index output path: {exc}")

        if self._initialized:
            self.rebuild_all()
        return True

    def open_index_file(self) -> str:
        """Ensure the body file exists and return its absolute path."""
        with self._pipeline_lock:
            return self.writer.ensure_index_file(self._sync_output_path())

    def read_meta(self) -> Optional[IndexMeta]:
        return self.writer.read_meta(self.output_path)

    def dispose(self) -> None:
        self._clear_pending()
        with self._pipeline_lock:
            self.store.clear()
            self._initialized = False
            self._reset_failure_state(clear_notice=True)
            self.resolver.dispose()
