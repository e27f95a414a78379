"""Tests for the atomic file adapter and the local file system."""

import errno
import os

import pytest

from obs_index.core.exceptions import WriteFailure
from obs_index.storage.adapter import FileAdapter, is_retryable_error
from obs_index.storage.filesystem import LocalFileSystem
from tests.fakes import MemoryFileSystem


def make_adapter(fs=None):
    delays = []
    adapter = FileAdapter(fs or MemoryFileSystem(), sleep=delays.append, stamp=lambda: "1")
    return adapter, delays


def busy() -> OSError:
    return OSError(errno.EBUSY, "Resource busy")


class TestWriteAtomic:
    """Temp file, backup, rename and rollback."""

    def test_creates_parents_and_file(self):
        fs = MemoryFileSystem()
        adapter, _ = make_adapter(fs)

        adapter.write_atomic(".obs-index/deep/index.ndjson", "data\n")

        assert fs.files[".obs-index/deep/index.ndjson"] == "data\n"
        assert {".obs-index", ".obs-index/deep"} <= fs.dirs
        assert fs.stray_files() == []

    def test_replaces_existing_with_backup_cleanup(self):
        fs = MemoryFileSystem()
        fs.files["index.ndjson"] = "old"
        adapter, _ = make_adapter(fs)

        adapter.write_atomic("index.ndjson", "new", create_backup=True)

        assert fs.files["index.ndjson"] == "new"
        assert ("rename", "index.ndjson", "index.ndjson.bak") in fs.calls
        assert fs.stray_files() == []

    def test_stale_backup_is_replaced(self):
        fs = MemoryFileSystem()
        fs.files["index.ndjson"] = "old"
        fs.files["index.ndjson.bak"] = "ancient"
        adapter, _ = make_adapter(fs)

        adapter.write_atomic("index.ndjson", "new", create_backup=True)

        assert fs.files["index.ndjson"] == "new"
        assert "index.ndjson.bak" not in fs.files

    def test_without_backup_renames_over_destination(self):
        fs = MemoryFileSystem()
        fs.files["index.ndjson"] = "old"
        adapter, _ = make_adapter(fs)

        adapter.write_atomic("index.ndjson", "new", create_backup=False)

        assert fs.files["index.ndjson"] == "new"
        assert not any(call[0] == "rename" and call[2].endswith(".bak") for call in fs.calls)

    @pytest.mark.parametrize("create_backup", [True, False])
    def test_interrupted_rename_keeps_previous_content(self, create_backup):
        fs = MemoryFileSystem()
        fs.files["index.ndjson"] = "previous"
        fs.fail("rename", OSError(errno.ENOSPC, "No space left on device"),
                match=lambda dst: dst == "index.ndjson")
        adapter, _ = make_adapter(fs)

        with pytest.raises(OSError):
            adapter.write_atomic("index.ndjson", "next", create_backup=create_backup)

        assert fs.files["index.ndjson"] == "previous"
        assert fs.stray_files() == []

    def test_interrupted_first_write_leaves_no_file(self):
        fs = MemoryFileSystem()
        fs.fail("rename", OSError(errno.ENOSPC, "No space left on device"))
        adapter, _ = make_adapter(fs)

        with pytest.raises(OSError):
            adapter.write_atomic("index.ndjson", "next")

        assert "index.ndjson" not in fs.files
        assert fs.stray_files() == []

    def test_missing_temp_file_is_an_error(self):
        class DroppingFileSystem(MemoryFileSystem):
            def write(self, path, content):
                self.calls.append(("write", path))

        fs = DroppingFileSystem()
        fs.files["index.ndjson"] = "previous"
        adapter, _ = make_adapter(fs)

        with pytest.raises(OSError):
            adapter.write_atomic("index.ndjson", "next", retries=0)

        assert fs.files["index.ndjson"] == "previous"

    def test_retryable_errors_back_off_and_succeed(self):
        fs = MemoryFileSystem()
        fs.fail("write", busy(), times=2)
        adapter, delays = make_adapter(fs)

        adapter.write_atomic("index.ndjson", "data", retries=3, retry_delay=0.1)

        assert fs.files["index.ndjson"] == "data"
        assert delays == pytest.approx([0.1, 0.2])

    def test_retry_delay_is_capped(self):
        fs = MemoryFileSystem()
        fs.fail("write", busy(), times=10)
        adapter, delays = make_adapter(fs)

        with pytest.raises(OSError):
            adapter.write_atomic("index.ndjson", "data", retries=6, retry_delay=0.5)

        assert delays == sorted(delays)
        assert max(delays) == 2.0
        assert len(delays) == 6

    def test_non_retryable_error_is_raised_immediately(self):
        fs = MemoryFileSystem()
        fs.fail("write", OSError(errno.ENOSPC, "No space left on device"))
        adapter, delays = make_adapter(fs)

        with pytest.raises(OSError):
            adapter.write_atomic("index.ndjson", "data")

        assert delays == []

    def test_backup_cleanup_failure_is_not_raised(self):
        fs = MemoryFileSystem()
        fs.files["index.ndjson"] = "old"
        fs.fail("remove", OSError(errno.EIO, "I/O error"), match=lambda p: p.endswith(".bak"))
        adapter, _ = make_adapter(fs)

        adapter.write_atomic("index.ndjson", "new", create_backup=True)

        assert fs.files["index.ndjson"] == "new"


class TestDirectoriesAndProbe:
    """ensure_directory and test_writability."""

    def test_ensure_directory_tolerates_concurrent_creation(self):
        class RacingFileSystem(MemoryFileSystem):
            def mkdir(self, path):
                # Another writer wins the race
                self.dirs.add(path)
                raise FileExistsError(errno.EEXIST, "File exists", path)

        fs = RacingFileSystem()
        adapter, _ = make_adapter(fs)

        adapter.ensure_directory("a/b/c")

        assert {"a", "a/b", "a/b/c"} <= fs.dirs

    def test_ensure_directory_existing_is_noop(self):
        fs = MemoryFileSystem()
        fs.dirs.update({"a", "a/b"})
        adapter, _ = make_adapter(fs)

        adapter.ensure_directory("a/b")

        assert not any(call[0] == "mkdir" for call in fs.calls)

    def test_probe_success_leaves_no_marker(self):
        fs = MemoryFileSystem()
        fs.dirs.add("out")
        adapter, _ = make_adapter(fs)

        result = adapter.test_writability("out")

        assert result.ok is True
        assert fs.files == {}

    def test_probe_retries_transient_errors(self):
        fs = MemoryFileSystem()
        fs.dirs.add("out")
        fs.fail("write", busy(), times=2)
        adapter, delays = make_adapter(fs)

        result = adapter.test_writability("out")

        assert result.ok is True
        assert delays == pytest.approx([0.1, 0.2])

    def test_probe_reports_failure_without_raising(self):
        fs = MemoryFileSystem()
        fs.dirs.add("out")
        fs.fail("write", OSError(errno.EROFS, "Read-only file system"))
        adapter, _ = make_adapter(fs)

        result = adapter.test_writability("out")

        assert result.ok is False
        assert result.retryable is False
        assert "Read-only" in result.message


@pytest.mark.parametrize("error,expected", [
    (OSError(errno.EBUSY, "busy"), True),
    (OSError(errno.EACCES, "denied"), True),
    (OSError(errno.EPERM, "not permitted"), True),
    (OSError("file is locked by another process"), True),
    (OSError("The process cannot access the file because it is in use"), True),
    (OSError(errno.ENOSPC, "No space left on device"), False),
    (ValueError("bad value"), False),
    (WriteFailure("x", retryable=True), True),
    (WriteFailure("x", retryable=False), False),
])
def test_is_retryable_error(error, expected):
    assert is_retryable_error(error) is expected


@pytest.mark.integration
class TestLocalFileSystem:
    """The adapter against a real directory."""

    def test_atomic_write_on_disk(self, temp_dir):
        fs = LocalFileSystem(temp_dir)
        adapter = FileAdapter(fs)

        adapter.write_atomic(".obs-index/index.ndjson", "one\n", create_backup=True)
        adapter.write_atomic(".obs-index/index.ndjson", "two\n", create_backup=True)

        target = os.path.join(temp_dir, ".obs-index", "index.ndjson")
        with open(target, encoding="utf-8") as handle:
            assert handle.read() == "two\n"
        leftovers = [name for name in os.listdir(os.path.dirname(target))
                     if ".tmp." in name or name.endswith(".bak")]
        assert leftovers == []

    def test_resolve_and_lock(self, temp_dir):
        fs = LocalFileSystem(temp_dir)

        resolved = fs.resolve("a/b.ndjson")
        assert resolved == os.path.join(os.path.realpath(temp_dir), "a", "b.ndjson")

        with fs.lock("a/b.ndjson"):
            assert os.path.isdir(os.path.join(os.path.realpath(temp_dir), "a"))

    def test_probe_on_disk(self, temp_dir):
        adapter = FileAdapter(LocalFileSystem(temp_dir))

        assert adapter.test_writability("").ok is True
        assert os.listdir(temp_dir) == []
