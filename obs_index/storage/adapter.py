"""
Atomic file operations on top of a DurableFileSystem.

Every write goes to a uniquely named temporary file first and is moved into
place with a single rename, so readers only ever see the previous content or
the new content.
"""

import errno
import logging
import time
import uuid
from typing import Callable, ContextManager, Optional

from ..core.models import ProbeResult
from ..core.exceptions import WriteFailure
from .filesystem import DurableFileSystem


DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY = 0.1  # seconds
MAX_RETRY_DELAY = 2.0  # seconds

PROBE_PREFIX = ".obs-index-write-test-"
BACKUP_SUFFIX = ".bak"

RETRYABLE_ERRNOS = frozenset(
    code
    for code in (
        getattr(errno, "EBUSY", None),
        getattr(errno, "EPERM", None),
        getattr(errno, "EACCES", None),
        getattr(errno, "EAGAIN", None),
        getattr(errno, "ETXTBSY", None),
    )
    if code is not None
)
RETRYABLE_MARKERS = ("ebusy", "eperm", "busy", "locked", "in use", "permission")


def is_retryable_error(exc: BaseException) -> bool:
    """Return True when ``exc`` looks like a transient busy/locked condition."""
    if isinstance(exc, WriteFailure):
        return exc.retryable
    if isinstance(exc, TimeoutError):
        return True
    if getattr(exc, "errno", None) in RETRYABLE_ERRNOS:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


def join_path(folder: str, name: str) -> str:
    return f"{folder}/{name}" if folder else name


def parent_of(path: str) -> str:
    folder, _, _ = path.rpartition("/")
    return folder


def _unique_stamp() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class FileAdapter:
    """Directory creation, writability probing and atomic writes."""

    def __init__(
        self,
        fs: DurableFileSystem,
        sleep: Callable[[float], None] = time.sleep,
        stamp: Callable[[], str] = _unique_stamp,
        logger: Optional[logging.Logger] = None,
    ):
        self.fs = fs
        self.sleep = sleep
        self.stamp = stamp
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Pass-through helpers
    # ------------------------------------------------------------------
    def exists(self, path: str) -> bool:
        return self.fs.exists(path)

    def read(self, path: str) -> str:
        return self.fs.read(path)

    def resolve(self, path: str) -> str:
        return self.fs.resolve(path)

    def lock(self, path: str) -> ContextManager[None]:
        return self.fs.lock(path)

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------
    def ensure_directory(self, folder: str) -> None:
        """Create ``folder`` and its parents, tolerating concurrent creators."""
        if not folder:
            return

        current = ""
        for part in folder.split("/"):
            if not part:
                continue
            current = join_path(current, part)
            if self.fs.exists(current):
                continue
            try:
                self.fs.mkdir(current)
            except FileExistsError:
                continue
            except OSError:
                # Another writer may have created it between the check and mkdir
                if self.fs.exists(current):
                    continue
                raise

    def test_writability(
        self,
        folder: str,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> ProbeResult:
        """Write and delete a marker file in ``folder``.

        Transient failures are retried with ``retry_delay * 2**attempt``
        between attempts. The probe never raises.
        """
        probe_path = join_path(folder, f"{PROBE_PREFIX}{self.stamp()}.tmp")

        for attempt in range(retries + 1):
            try:
                self.fs.write(probe_path, "")
                self.fs.remove(probe_path)
                return ProbeResult(ok=True)
            except OSError as exc:
                retryable = is_retryable_error(exc)
                if retryable and attempt < retries:
                    self.sleep(retry_delay * (2 ** attempt))
                    continue
                self._discard(probe_path)
                return ProbeResult(ok=False, retryable=retryable, message=str(exc))

        return ProbeResult(ok=False, message="writability probe did not run")

    # ------------------------------------------------------------------
    # Atomic writes
    # ------------------------------------------------------------------
    def write_atomic(
        self,
        path: str,
        content: str,
        create_backup: bool = True,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Atomically replace ``path`` with ``content``.

        Retryable failures are attempted again up to ``retries`` times with
        capped exponential backoff; anything else propagates immediately.
        """
        attempt = 0
        while True:
            try:
                self._write_once(path, content, create_backup)
                return
            except OSError as exc:
                if attempt >= retries or not is_retryable_error(exc):
                    raise
                delay = min(retry_delay * (2 ** attempt), MAX_RETRY_DELAY)
                self.logger.debug(
                    f"Retrying write of {path} in {delay:.2f}s "
                    f"(attempt {attempt + 1}/{retries}): {exc}"
                )
                self.sleep(delay)
                attempt += 1

    def _write_once(self, path: str, content: str, create_backup: bool) -> None:
        self.ensure_directory(parent_of(path))

        temp_path = f"{path}.tmp.{self.stamp()}"
        backup_path = f"{path}{BACKUP_SUFFIX}"

        try:
            self.fs.write(temp_path, content)
        except OSError:
            self._discard(temp_path)
            raise

        if not self.fs.exists(temp_path):
            raise OSError(errno.EIO, f"Temporary file was not created: {temp_path}")

        backed_up = False
        try:
            if create_backup and self.fs.exists(path):
                if self.fs.exists(backup_path):
                    self.fs.remove(backup_path)
                self.fs.rename(path, backup_path)
                backed_up = True
            self.fs.rename(temp_path, path)
        except OSError:
            self._discard(temp_path)
            self._restore_backup(path, backup_path)
            raise

        if backed_up:
            try:
                self.fs.remove(backup_path)
            except OSError as exc:
                self.logger.warning(f"Could not remove backup {backup_path}: {exc}")

    def _restore_backup(self, path: str, backup_path: str) -> None:
        try:
            if not self.fs.exists(path) and self.fs.exists(backup_path):
                self.fs.rename(backup_path, path)
                self.logger.info(f"Restored {path} from backup after failed write")
        except OSError as exc:
            self.logger.error(f"Rollback of {path} from backup failed: {exc}")

    def _discard(self, path: str) -> None:
        try:
            if self.fs.exists(path):
                self.fs.remove(path)
        except OSError as exc:
            self.logger.warning(f"Could not remove temporary file {path}: {exc}")
