"""
Configuration management for obs-index.

Settings are validated once when loaded; components receive the resulting
``IndexConfig`` instead of reading raw dictionaries.
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .paths import get_path_manager


DEFAULT_OUTPUT_FOLDER = ".obs-index"
DEFAULT_FILE_NAME = "task-index.ndjson"
NDJSON_SUFFIX = ".ndjson"
SUPPORTED_PARSERS = ("inline", "frontmatter")
DEFAULT_COMPLETE_STATUS_CHARS = ["x", "X", "-", "!"]
DEFAULT_IGNORE_DIRS = [".obsidian", ".trash", ".git"]

DEBOUNCE_MIN_MS = 100
DEBOUNCE_MAX_MS = 5000
DEFAULT_DEBOUNCE_MS = 1000
KEEP_DONE_DAYS_MAX = 3650


def _normalize_path(path: str) -> str:
    """Expand user and convert to absolute path."""
    return os.path.abspath(os.path.expanduser(path))


def normalize_relative_path(path: str) -> str:
    """Normalize separators in a vault-relative path: forward slashes, no empty segments.

    Characters inside segments are kept as-is so the result still names the
    same file on disk.
    """
    cleaned = path.replace("\\", "/")
    leading = cleaned.startswith("/")
    parts = [part for part in cleaned.split("/") if part and part != "."]
    joined = "/".join(parts)
    # Keep a leading slash so absolute paths are still rejected by validation.
    return f"/{joined}" if leading else joined


def _clean_setting_path(value: str) -> str:
    return value.replace("\u00a0", " ").strip()


def _is_valid_relative_path(path: str) -> bool:
    if not path:
        return False
    if path.startswith("/") or path.startswith("../"):
        return False
    if ":" in path:
        return False
    return all(part and part != ".." for part in path.split("/"))


def _is_valid_folder_path(path: str) -> bool:
    return _is_valid_relative_path(path) and not path.lower().endswith(NDJSON_SUFFIX)


def normalize_file_name(value: Any) -> str:
    """Return a bare ``*.ndjson`` file name, or the default when invalid."""
    if not isinstance(value, str):
        return DEFAULT_FILE_NAME
    trimmed = value.strip()
    if not trimmed or trimmed in (".", ".."):
        return DEFAULT_FILE_NAME
    if any(sep in trimmed for sep in ("/", "\\", ":")):
        return DEFAULT_FILE_NAME
    if trimmed.lower().endswith(NDJSON_SUFFIX):
        return trimmed
    return f"{trimmed}{NDJSON_SUFFIX}"


def normalize_folder_path(value: Any) -> str:
    """Return a vault-relative folder, or the default folder when invalid."""
    if not isinstance(value, str) or not value.strip():
        return DEFAULT_OUTPUT_FOLDER
    normalized = normalize_relative_path(_clean_setting_path(value))
    if not _is_valid_folder_path(normalized):
        return DEFAULT_OUTPUT_FOLDER
    return normalized


def normalize_include_parsers(value: Any) -> List[str]:
    raw_values: List[str] = []
    if isinstance(value, str):
        raw_values.extend(value.split(","))
    elif isinstance(value, (list, tuple, set, frozenset)):
        raw_values.extend(item for item in value if isinstance(item, str))

    normalized: List[str] = []
    for item in raw_values:
        name = item.strip().lower()
        if name in SUPPORTED_PARSERS and name not in normalized:
            normalized.append(name)
    return normalized or list(SUPPORTED_PARSERS)


def _clamped_int(value: Any, default: int, lower: int, upper: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    # round half up
    return max(lower, min(upper, int(math.floor(number + 0.5))))


def _bool_or_default(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def migrate_legacy_output_path(raw_path: str) -> Tuple[str, bool, str]:
    """Split a legacy ``output_path`` setting into (file name, default-folder flag, folder)."""
    fallback = (DEFAULT_FILE_NAME, True, DEFAULT_OUTPUT_FOLDER)
    normalized = normalize_relative_path(_clean_setting_path(raw_path))
    if not _is_valid_relative_path(normalized):
        return fallback

    folder_part, _, file_part = normalized.rpartition("/")
    file_name = normalize_file_name(file_part)
    folder = normalize_folder_path(folder_part)
    return file_name, folder == DEFAULT_OUTPUT_FOLDER, folder


@dataclass
class IndexSettings:
    """Settings controlling the task index export."""

    enabled: bool = True
    file_name: str = DEFAULT_FILE_NAME
    output_to_default_folder: bool = True
    custom_output_folder: str = DEFAULT_OUTPUT_FOLDER
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    include_parsers: List[str] = field(default_factory=lambda: list(SUPPORTED_PARSERS))
    include_done: bool = True
    include_raw: bool = False
    keep_done_days: int = 0
    create_backup: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> IndexSettings:
        """Build validated settings from a (possibly partial or legacy) mapping."""
        source = data if isinstance(data, dict) else {}
        defaults = cls()

        settings = cls(
            enabled=_bool_or_default(source.get("enabled"), defaults.enabled),
            debounce_ms=_clamped_int(
                source.get("debounce_ms"), DEFAULT_DEBOUNCE_MS, DEBOUNCE_MIN_MS, DEBOUNCE_MAX_MS
            ),
            include_parsers=normalize_include_parsers(source.get("include_parsers")),
            include_done=_bool_or_default(source.get("include_done"), defaults.include_done),
            include_raw=_bool_or_default(source.get("include_raw"), defaults.include_raw),
            keep_done_days=_clamped_int(source.get("keep_done_days"), 0, 0, KEEP_DONE_DAYS_MAX),
            create_backup=_bool_or_default(source.get("create_backup"), defaults.create_backup),
        )

        has_new_shape = any(
            key in source for key in ("file_name", "output_to_default_folder", "custom_output_folder")
        )
        legacy_path = source.get("output_path")
        if has_new_shape:
            settings.file_name = normalize_file_name(source.get("file_name"))
            settings.output_to_default_folder = _bool_or_default(
                source.get("output_to_default_folder"), defaults.output_to_default_folder
            )
            settings.custom_output_folder = normalize_folder_path(source.get("custom_output_folder"))
        elif isinstance(legacy_path, str) and legacy_path.strip():
            (
                settings.file_name,
                settings.output_to_default_folder,
                settings.custom_output_folder,
            ) = migrate_legacy_output_path(legacy_path)

        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "file_name": self.file_name,
            "output_to_default_folder": self.output_to_default_folder,
            "custom_output_folder": self.custom_output_folder,
            "debounce_ms": self.debounce_ms,
            "include_parsers": list(self.include_parsers),
            "include_done": self.include_done,
            "include_raw": self.include_raw,
            "keep_done_days": self.keep_done_days,
            "create_backup": self.create_backup,
        }

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0


def resolve_output_path(settings: IndexSettings) -> str:
    """Resolve the vault-relative NDJSON output path for the given settings."""
    file_name = normalize_file_name(settings.file_name)
    folder = (
        DEFAULT_OUTPUT_FOLDER
        if settings.output_to_default_folder
        else normalize_folder_path(settings.custom_output_folder)
    )
    joined = normalize_relative_path(f"{folder}/{file_name}" if folder else file_name)
    if not _is_valid_relative_path(joined):
        return f"{DEFAULT_OUTPUT_FOLDER}/{DEFAULT_FILE_NAME}"
    return joined


def _normalize_status_chars(value: Any) -> List[str]:
    if isinstance(value, str):
        value = value.replace(",", " ").split()
    chars: List[str] = []
    if isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str) and item.strip():
                char = item.strip()[0]
                if char not in chars:
                    chars.append(char)
    return chars or list(DEFAULT_COMPLETE_STATUS_CHARS)


@dataclass
class IndexConfig:
    """Top-level obs-index configuration."""

    vault_path: Optional[str] = None
    complete_status_chars: List[str] = field(default_factory=lambda: list(DEFAULT_COMPLETE_STATUS_CHARS))
    ignore_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_DIRS))
    index: IndexSettings = field(default_factory=IndexSettings)

    def __post_init__(self) -> None:
        if self.vault_path:
            self.vault_path = _normalize_path(self.vault_path)
        self.complete_status_chars = _normalize_status_chars(self.complete_status_chars)

    def signature(self, version: str = "") -> str:
        """Stable fingerprint of every setting that affects the exported index."""
        return json.dumps(
            {
                "version": version,
                "vault_path": self.vault_path,
                "complete_status_chars": sorted(self.complete_status_chars),
                "index": {
                    **self.index.to_dict(),
                    "include_parsers": sorted(self.index.include_parsers),
                },
            },
            sort_keys=True,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> IndexConfig:
        ignore_dirs = data.get("ignore_dirs")
        return cls(
            vault_path=data.get("vault_path") or None,
            complete_status_chars=data.get("complete_status_chars", list(DEFAULT_COMPLETE_STATUS_CHARS)),
            ignore_dirs=(
                [str(item) for item in ignore_dirs]
                if isinstance(ignore_dirs, list)
                else list(DEFAULT_IGNORE_DIRS)
            ),
            index=IndexSettings.from_dict(data.get("index")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vault_path": self.vault_path,
            "complete_status_chars": list(self.complete_status_chars),
            "ignore_dirs": list(self.ignore_dirs),
            "index": self.index.to_dict(),
        }

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    @classmethod
    def load_from_file(cls, config_path: str) -> IndexConfig:
        config_path = _normalize_path(config_path)
        if not os.path.exists(config_path):
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError:
            return cls()

        if not isinstance(data, dict):
            return cls()
        return cls.from_dict(data)

    def save_to_file(self, config_path: str) -> None:
        config_path = _normalize_path(config_path)
        os.makedirs(os.path.dirname(config_path), exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle, indent=2, ensure_ascii=False)
            handle.write("\n")


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    return get_path_manager().config_path


def load_config(config_path: Optional[str] = None) -> IndexConfig:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        IndexConfig object
    """
    if config_path is None:
        config_path = str(get_default_config_path())
    return IndexConfig.load_from_file(config_path)


def save_config(config: IndexConfig, config_path: Optional[str] = None) -> None:
    """
    Save configuration to file.

    Args:
        config: IndexConfig object to save
        config_path: Optional path to save to. Uses default if not provided.
    """
    if config_path is None:
        manager = get_path_manager()
        manager.ensure_directories()
        config_path = str(manager.config_path)
    config.save_to_file(config_path)
