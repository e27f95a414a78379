"""
Snapshot persistence: NDJSON body, JSON sidecar and write backoff.
"""

import contextlib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

from ..core.exceptions import WriteFailure
from ..core.models import IndexMeta, NormalizedTask
from ..storage.adapter import FileAdapter, is_retryable_error, parent_of


INDEX_SCHEMA_VERSION = 6
WRITE_RETRY_BASE_SECONDS = 1.0
WRITE_RETRY_MAX_SECONDS = 30.0
NOTICE_COOLDOWN_SECONDS = 15.0

NDJSON_SUFFIX = ".ndjson"
META_SUFFIX = ".meta.json"


@dataclass
class SerializedRows:
    """Result of serializing one batch of rows."""

    lines: List[str] = field(default_factory=list)
    skipped: int = 0
    error: Optional[str] = None


def serialize_task(task: NormalizedTask) -> str:
    line = json.dumps(task.to_dict(), ensure_ascii=False, separators=(",", ":"))
    # Lone surrogates survive json.dumps but cannot be written as UTF-8
    line.encode("utf-8")
    return line


def serialize_tasks(tasks: Iterable[NormalizedTask], logger: Optional[logging.Logger] = None) -> SerializedRows:
    """Serialize each task to one compact JSON line, skipping rows that fail."""
    log = logger or logging.getLogger(__name__)
    rows = SerializedRows()
    for task in tasks:
        try:
            rows.lines.append(serialize_task(task))
        except (TypeError, ValueError) as exc:
            rows.skipped += 1
            if rows.error is None:
                rows.error = f"Failed to serialize task row: {exc}"
            log.warning(f"Skipping task row {getattr(task, 'id', '?')}: {exc}")
    return rows


def meta_path_for(output_path: str) -> str:
    """``notes/index.ndjson`` -> ``notes/index.meta.json``."""
    if output_path.endswith(NDJSON_SUFFIX):
        return f"{output_path[:-len(NDJSON_SUFFIX)]}{META_SUFFIX}"
    return f"{output_path}{META_SUFFIX}"


def render_body(lines: Sequence[str]) -> str:
    return "\n".join(lines) + "\n" if lines else ""


def render_meta(meta: IndexMeta) -> str:
    return json.dumps(meta.to_dict(), indent=2, ensure_ascii=False) + "\n"


class SnapshotWriter:
    """Writes the snapshot body and its sidecar atomically."""

    def __init__(self, adapter: FileAdapter, logger: Optional[logging.Logger] = None):
        self.adapter = adapter
        self.logger = logger or logging.getLogger(__name__)

    def write(
        self,
        lines: Sequence[str],
        meta: IndexMeta,
        output_path: str,
        create_backup: bool = False,
    ) -> None:
        """
        Persist ``lines`` to ``output_path`` and ``meta`` to its sidecar.

        The sidecar is written even when taking the lock or writing the body
        fails; in that case its ``lastError`` describes the failure and
        ``WriteFailure`` is raised afterwards.

        Raises:
            WriteFailure: the body or the sidecar could not be written
        """
        meta_path = meta_path_for(output_path)

        with contextlib.ExitStack() as stack:
            try:
                stack.enter_context(self.adapter.lock(output_path))
                self.adapter.write_atomic(output_path, render_body(lines), create_backup=create_backup)
            except OSError as exc:
                message = f"Failed to write index: {exc}"
                meta.last_error = message
                self.logger.error(f"{message} ({output_path})")
                try:
                    self.write_meta(meta, output_path, create_backup=create_backup)
                except OSError as meta_exc:
                    self.logger.error(f"Failed to write index metadata {meta_path}: {meta_exc}")
                raise WriteFailure(message, retryable=is_retryable_error(exc)) from exc

            try:
                self.write_meta(meta, output_path, create_backup=create_backup)
            except OSError as exc:
                message = f"Failed to write index metadata: {exc}"
                self.logger.error(f"{message} ({meta_path})")
                raise WriteFailure(message, retryable=is_retryable_error(exc)) from exc

    def write_meta(self, meta: IndexMeta, output_path: str, create_backup: bool = False) -> None:
        self.adapter.write_atomic(meta_path_for(output_path), render_meta(meta), create_backup=create_backup)

    def read_meta(self, output_path: str) -> Optional[IndexMeta]:
        """Load the sidecar for ``output_path``; None when missing or unreadable."""
        meta_path = meta_path_for(output_path)
        if not self.adapter.exists(meta_path):
            return None
        try:
            data = json.loads(self.adapter.read(meta_path))
        except (OSError, ValueError) as exc:
            self.logger.warning(f"Could not read index metadata {meta_path}: {exc}")
            return None
        if not isinstance(data, dict):
            return None
        return IndexMeta.from_dict(data)

    def ensure_index_file(self, output_path: str) -> str:
        """Create an empty body file when missing and return its absolute path."""
        self.adapter.ensure_directory(parent_of(output_path))
        if not self.adapter.exists(output_path):
            self.adapter.write_atomic(output_path, "", create_backup=False)
        return self.adapter.resolve(output_path)


class WriteBackoff:
    """
    Caller-level backoff after failed snapshot writes.

    After the n-th consecutive failure no write is attempted for
    ``base * 2**(n-1)`` seconds (capped at ``maximum``). Failure notices are
    rate limited to one per ``notice_cooldown`` seconds.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        base: float = WRITE_RETRY_BASE_SECONDS,
        maximum: float = WRITE_RETRY_MAX_SECONDS,
        notice_cooldown: float = NOTICE_COOLDOWN_SECONDS,
    ):
        self.clock = clock
        self.base = base
        self.maximum = maximum
        self.notice_cooldown = notice_cooldown
        self.failures = 0
        self.next_allowed_at = 0.0
        self.last_notice_at: Optional[float] = None

    def delay_for(self, failures: int) -> float:
        if failures <= 0:
            return 0.0
        exponent = min(failures - 1, 32)
        return min(self.base * (2 ** exponent), self.maximum)

    def remaining(self) -> float:
        return max(0.0, self.next_allowed_at - self.clock())

    def in_window(self) -> bool:
        return self.remaining() > 0

    def record_failure(self) -> float:
        """Count a failure and return the new backoff delay."""
        self.failures += 1
        delay = self.delay_for(self.failures)
        self.next_allowed_at = self.clock() + delay
        return delay

    def should_notify(self) -> bool:
        now = self.clock()
        if self.last_notice_at is None or now - self.last_notice_at >= self.notice_cooldown:
            self.last_notice_at = now
            return True
        return False

    def reset(self, clear_notice: bool = False) -> None:
        """Forget failures; ``clear_notice`` also ends the notice cooldown."""
        self.failures = 0
        self.next_allowed_at = 0.0
        if clear_notice:
            self.last_notice_at = None
