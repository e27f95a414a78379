"""Tests for output path resolution."""

import errno
import logging

import pytest

from obs_index.core.config import IndexSettings
from obs_index.core.exceptions import NotInitializedError
from obs_index.index.output import OutputPathResolver
from obs_index.storage.adapter import FileAdapter
from tests.fakes import MemoryFileSystem


def make_resolver():
    fs = MemoryFileSystem()
    return fs, OutputPathResolver(FileAdapter(fs, sleep=lambda _: None))


def test_current_path_requires_initialization():
    _, resolver = make_resolver()

    with pytest.raises(NotInitializedError):
        resolver.get_current_path()


def test_initialize_creates_folder_and_probes():
    fs, resolver = make_resolver()

    resolver.initialize(IndexSettings())

    assert resolver.is_initialized
    assert resolver.get_current_path() == ".obs-index/task-index.ndjson"
    assert ".obs-index" in fs.dirs
    assert any(call[0] == "write" and ".obs-index-write-test-" in call[1] for call in fs.calls)
    assert fs.files == {}


def test_probe_failure_is_logged_not_raised(caplog):
    fs, resolver = make_resolver()
    fs.fail("write", OSError(errno.EROFS, "Read-only file system"))

    with caplog.at_level(logging.WARNING):
        resolver.initialize(IndexSettings())

    assert resolver.is_initialized
    assert "probe write failed" in caplog.text


def test_reinitialize_same_path_needs_no_rebuild():
    _, resolver = make_resolver()
    resolver.initialize(IndexSettings())

    transition = resolver.reinitialize(IndexSettings())

    assert transition.path_changed is False
    assert transition.requires_rebuild is False
    assert transition.new_path == ".obs-index/task-index.ndjson"


def test_reinitialize_changed_path():
    fs, resolver = make_resolver()
    resolver.initialize(IndexSettings())
    moved = IndexSettings(output_to_default_folder=False, custom_output_folder="exports/tasks")

    transition = resolver.reinitialize(moved)

    assert transition.path_changed is True
    assert transition.requires_rebuild is True
    assert transition.old_path == ".obs-index/task-index.ndjson"
    assert transition.new_path == "exports/tasks/task-index.ndjson"
    assert {"exports", "exports/tasks"} <= fs.dirs


def test_first_reinitialize_is_not_a_path_change():
    _, resolver = make_resolver()

    transition = resolver.reinitialize(IndexSettings(file_name="tasks"))

    assert transition.path_changed is False
    assert transition.old_path is None
    assert transition.new_path == ".obs-index/tasks.ndjson"
    assert resolver.is_initialized


def test_dispose_forgets_path():
    _, resolver = make_resolver()
    resolver.initialize(IndexSettings())

    resolver.dispose()

    assert not resolver.is_initialized
    with pytest.raises(NotInitializedError):
        resolver.get_current_path()
