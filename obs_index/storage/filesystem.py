"""
File system capability used by the index writer.

All paths handed to a ``DurableFileSystem`` are vault-relative and use forward
slashes. ``LocalFileSystem`` maps them onto a directory on disk.
"""

import contextlib
import errno
import os
import time
from pathlib import Path
from typing import ContextManager, Iterator, Optional, Protocol

try:  # fcntl is only available on POSIX platforms
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - Windows fallback
    fcntl = None  # type: ignore


DEFAULT_LOCK_TIMEOUT = 8.0  # seconds
LOCK_SLEEP_INTERVAL = 0.05  # seconds


class DurableFileSystem(Protocol):
    """Minimal storage capability needed for atomic snapshot writes.

    ``rename`` replaces an existing destination. ``mkdir`` creates a single
    directory level and raises ``FileExistsError`` if it is already there.
    """

    def exists(self, path: str) -> bool: ...

    def mkdir(self, path: str) -> None: ...

    def read(self, path: str) -> str: ...

    def write(self, path: str, content: str) -> None: ...

    def rename(self, src: str, dst: str) -> None: ...

    def remove(self, path: str) -> None: ...

    def resolve(self, path: str) -> str: ...

    def lock(self, path: str) -> ContextManager[None]: ...


class LocalFileSystem:
    """DurableFileSystem backed by a directory on the local disk."""

    def __init__(self, root: str, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.root = Path(os.path.expanduser(root)).resolve()
        self.lock_timeout = lock_timeout

    def resolve(self, path: str) -> str:
        relative = path.replace("\\", "/").lstrip("/")
        return str(self.root.joinpath(*[part for part in relative.split("/") if part]))

    def exists(self, path: str) -> bool:
        return os.path.exists(self.resolve(path))

    def mkdir(self, path: str) -> None:
        os.mkdir(self.resolve(path))

    def read(self, path: str) -> str:
        with open(self.resolve(path), "r", encoding="utf-8") as handle:
            return handle.read()

    def write(self, path: str, content: str) -> None:
        with open(self.resolve(path), "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())

    def rename(self, src: str, dst: str) -> None:
        os.replace(self.resolve(src), self.resolve(dst))

    def remove(self, path: str) -> None:
        os.remove(self.resolve(path))

    def lock(self, path: str) -> ContextManager[None]:
        return _file_lock(Path(self.resolve(path)), timeout=self.lock_timeout)


def _lock_file_path(path: Path) -> Path:
    """Return the companion lock file path for the target file."""
    return path.parent / f"{path.name}.lock"


@contextlib.contextmanager
def _file_lock(target_path: Path, timeout: Optional[float] = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
    """Acquire an exclusive cooperative lock around the target path.

    Uses POSIX advisory locking via fcntl when available; otherwise acts as a no-op.
    """
    if fcntl is None:
        yield
        return

    lock_path = _lock_file_path(target_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout if timeout is not None else None

    with open(lock_path, "a") as lock_file:
        while True:
            try:
                flags = fcntl.LOCK_EX | fcntl.LOCK_NB if deadline is not None else fcntl.LOCK_EX
                fcntl.flock(lock_file.fileno(), flags)
                break
            except OSError as exc:  # pragma: no cover - depends on timing
                if exc.errno not in (errno.EACCES, errno.EAGAIN):
                    raise
                if deadline is not None and time.monotonic() >= deadline:
                    raise TimeoutError(f"Timed out waiting for lock on {target_path}") from exc
                time.sleep(LOCK_SLEEP_INTERVAL)

        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
