"""Tests for configuration validation, migration and persistence."""

import json
import os

import pytest

from obs_index.core.config import (
    DEFAULT_FILE_NAME,
    DEFAULT_OUTPUT_FOLDER,
    IndexConfig,
    IndexSettings,
    load_config,
    migrate_legacy_output_path,
    normalize_file_name,
    normalize_folder_path,
    normalize_relative_path,
    resolve_output_path,
    save_config,
)
from obs_index.core.paths import get_path_manager, reset_path_manager


class TestIndexSettings:
    """Validation of the index settings block."""

    def test_defaults(self):
        settings = IndexSettings.from_dict(None)

        assert settings.enabled is True
        assert settings.file_name == DEFAULT_FILE_NAME
        assert settings.output_to_default_folder is True
        assert settings.debounce_ms == 1000
        assert settings.include_parsers == ["inline", "frontmatter"]
        assert settings.include_done is True
        assert settings.include_raw is False
        assert settings.keep_done_days == 0
        assert settings.create_backup is False

    @pytest.mark.parametrize("value,expected", [
        (50, 100),
        (99999, 5000),
        (250.5, 251),
        ("750", 750),
        ("soon", 1000),
        (float("nan"), 1000),
        (True, 1000),
        (None, 1000),
    ])
    def test_debounce_is_clamped(self, value, expected):
        assert IndexSettings.from_dict({"debounce_ms": value}).debounce_ms == expected

    @pytest.mark.parametrize("value,expected", [
        (-5, 0),
        (30, 30),
        (100000, 3650),
        ("x", 0),
    ])
    def test_keep_done_days_is_clamped(self, value, expected):
        assert IndexSettings.from_dict({"keep_done_days": value}).keep_done_days == expected

    def test_include_parsers_filters_unknown_names(self):
        settings = IndexSettings.from_dict({"include_parsers": "Frontmatter, bogus, frontmatter"})
        assert settings.include_parsers == ["frontmatter"]

        settings = IndexSettings.from_dict({"include_parsers": ["bogus"]})
        assert settings.include_parsers == ["inline", "frontmatter"]

    def test_non_bool_flags_fall_back(self):
        settings = IndexSettings.from_dict({"enabled": "no", "include_raw": 1})

        assert settings.enabled is True
        assert settings.include_raw is False

    def test_debounce_seconds(self):
        assert IndexSettings(debounce_ms=250).debounce_seconds == 0.25


@pytest.mark.parametrize("value,expected", [
    ("tasks", "tasks.ndjson"),
    ("tasks.NDJSON", "tasks.NDJSON"),
    ("  spaced  ", "spaced.ndjson"),
    ("", DEFAULT_FILE_NAME),
    ("..", DEFAULT_FILE_NAME),
    ("dir/tasks", DEFAULT_FILE_NAME),
    ("c:tasks", DEFAULT_FILE_NAME),
    (None, DEFAULT_FILE_NAME),
])
def test_normalize_file_name(value, expected):
    assert normalize_file_name(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("exports", "exports"),
    ("exports\\tasks//", "exports/tasks"),
    ("./exports/./tasks", "exports/tasks"),
    ("/absolute", DEFAULT_OUTPUT_FOLDER),
    ("../outside", DEFAULT_OUTPUT_FOLDER),
    ("a/../b", DEFAULT_OUTPUT_FOLDER),
    ("C:/Users", DEFAULT_OUTPUT_FOLDER),
    ("exports/file.ndjson", DEFAULT_OUTPUT_FOLDER),
    ("   ", DEFAULT_OUTPUT_FOLDER),
    ("  Exports\u00a0Tasks  ", "Exports Tasks"),
])
def test_normalize_folder_path(value, expected):
    assert normalize_folder_path(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("notes\\Weekly\u00a0plan.md", "notes/Weekly\u00a0plan.md"),
    ("./notes// spaced .md", "notes/ spaced .md"),
    ("/root.md", "/root.md"),
])
def test_normalize_relative_path_keeps_file_names(value, expected):
    assert normalize_relative_path(value) == expected


class TestOutputPath:
    def test_default_folder(self):
        assert resolve_output_path(IndexSettings()) == ".obs-index/task-index.ndjson"

    def test_custom_folder(self):
        settings = IndexSettings(output_to_default_folder=False, custom_output_folder="Exports/Tasks")
        assert resolve_output_path(settings) == "Exports/Tasks/task-index.ndjson"

    def test_invalid_custom_folder_falls_back(self):
        settings = IndexSettings(output_to_default_folder=False, custom_output_folder="../escape")
        assert resolve_output_path(settings) == ".obs-index/task-index.ndjson"

    def test_custom_folder_ignored_when_default_selected(self):
        settings = IndexSettings(output_to_default_folder=True, custom_output_folder="Exports")
        assert resolve_output_path(settings) == ".obs-index/task-index.ndjson"


class TestLegacyMigration:
    def test_split_into_file_and_folder(self):
        assert migrate_legacy_output_path("exports/tasks.ndjson") == ("tasks.ndjson", False, "exports")

    def test_bare_file_uses_default_folder(self):
        assert migrate_legacy_output_path("tasks.ndjson") == ("tasks.ndjson", True, DEFAULT_OUTPUT_FOLDER)

    def test_invalid_path_uses_defaults(self):
        assert migrate_legacy_output_path("/etc/passwd") == (DEFAULT_FILE_NAME, True, DEFAULT_OUTPUT_FOLDER)

    def test_from_dict_migrates_output_path(self):
        settings = IndexSettings.from_dict({"output_path": "data/out"})

        assert settings.file_name == "out.ndjson"
        assert settings.output_to_default_folder is False
        assert settings.custom_output_folder == "data"
        assert resolve_output_path(settings) == "data/out.ndjson"

    def test_new_keys_win_over_legacy(self):
        settings = IndexSettings.from_dict({"output_path": "data/out", "file_name": "fresh"})

        assert settings.file_name == "fresh.ndjson"
        assert settings.output_to_default_folder is True


class TestIndexConfig:
    def test_vault_path_is_absolute(self, temp_dir):
        config = IndexConfig(vault_path=os.path.join(temp_dir, "sub", "..", "vault"))
        assert config.vault_path == os.path.join(temp_dir, "vault")

    def test_status_chars_normalized(self):
        assert IndexConfig(complete_status_chars="x, X").complete_status_chars == ["x", "X"]
        assert IndexConfig(complete_status_chars=[]).complete_status_chars == ["x", "X", "-", "!"]

    def test_signature_tracks_relevant_settings(self):
        base = IndexConfig()
        same = IndexConfig()
        changed = IndexConfig()
        changed.index.include_raw = True

        assert base.signature("1.0") == same.signature("1.0")
        assert base.signature("1.0") != changed.signature("1.0")
        assert base.signature("1.0") != base.signature("1.1")

    def test_signature_ignores_parser_order(self):
        a = IndexConfig()
        b = IndexConfig()
        b.index.include_parsers = ["frontmatter", "inline"]

        assert a.signature() == b.signature()

    def test_save_and_load_roundtrip(self, temp_dir):
        path = os.path.join(temp_dir, "nested", "config.json")
        config = IndexConfig(vault_path=temp_dir)
        config.index.debounce_ms = 400
        config.index.keep_done_days = 14

        save_config(config, path)
        loaded = load_config(path)

        assert loaded.to_dict() == config.to_dict()

    def test_missing_or_corrupt_file_gives_defaults(self, temp_dir):
        missing = load_config(os.path.join(temp_dir, "missing.json"))
        assert missing.vault_path is None

        corrupt = os.path.join(temp_dir, "corrupt.json")
        with open(corrupt, "w", encoding="utf-8") as handle:
            handle.write("{not json")
        assert load_config(corrupt).to_dict() == IndexConfig().to_dict()

        listing = os.path.join(temp_dir, "list.json")
        with open(listing, "w", encoding="utf-8") as handle:
            json.dump([1, 2], handle)
        assert load_config(listing).vault_path is None

    def test_default_path_honours_home_override(self, temp_dir, monkeypatch):
        monkeypatch.setenv("OBS_INDEX_HOME", temp_dir)
        reset_path_manager()
        try:
            save_config(IndexConfig(vault_path=temp_dir))

            expected = os.path.join(os.path.realpath(temp_dir), "config.json")
            assert str(get_path_manager().config_path) == expected
            assert os.path.exists(expected)
            assert load_config().vault_path == temp_dir
        finally:
            reset_path_manager()
