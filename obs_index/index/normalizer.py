"""
Task normalization.

Turns raw ``Task`` records into ``NormalizedTask`` rows: applies the
parser/status/retention filters, resolves a stable anchor and id, and
computes the content hash used for change detection.
"""

from __future__ import annotations

import hashlib
import json
import logging
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..core.config import IndexConfig, SUPPORTED_PARSERS, normalize_relative_path
from ..core.models import NormalizedTask, Task, TaskStatus
from ..utils.date import combine_date_time, parse_date
from ..utils.tags import extract_tags, normalize_tags


PARSER_ALIASES = {
    "checkbox": "inline",
    "at-notation": "inline",
    "inline": "inline",
    "frontmatter": "frontmatter",
}

CANCELLED_CHAR = "-"
EXCEPTION_CHAR = "!"
ROOT_ANCHOR = "fm-root"

HASH_LENGTH = 16


def hash_text(raw: str) -> str:
    """Deterministic digest used for change detection (not integrity)."""
    return hashlib.sha256(raw.encode("utf-8", "surrogatepass")).hexdigest()[:HASH_LENGTH]


def normalize_parser(parser_id: str) -> str:
    """Map an internal parser id to its exported parser kind."""
    key = (parser_id or "").strip().lower()
    return PARSER_ALIASES.get(key, key)


def resolve_status(status_char: Optional[str], complete_status_chars: Iterable[str]) -> TaskStatus:
    if not status_char or not status_char.strip():
        return TaskStatus.TODO
    char = status_char.strip()[0]
    if char not in complete_status_chars:
        return TaskStatus.UNKNOWN
    if char == CANCELLED_CHAR:
        return TaskStatus.CANCELLED
    if char == EXCEPTION_CHAR:
        return TaskStatus.EXCEPTION
    return TaskStatus.DONE


def resolve_anchor(task: Task, parser: str) -> str:
    if task.block_id:
        return f"blk:{task.block_id}"
    if task.timer_target_id:
        return f"tid:{task.timer_target_id}"
    if parser == "frontmatter" or (task.line is not None and task.line < 0):
        return ROOT_ANCHOR
    if task.line is not None and task.line >= 0:
        return f"ln:{task.line + 1}"
    return "ln:0"


def file_base_name(path: str) -> str:
    name = posixpath.basename(path)
    if name.lower().endswith(".md"):
        name = name[:-3]
    return name


def build_file_level_raw(task: Task) -> str:
    """Stable ``key=value`` rendering of a record that has no source line."""
    fields = (
        ("content", task.content),
        ("status", task.status_char),
        ("start_date", task.start_date),
        ("start_time", task.start_time),
        ("end_date", task.end_date),
        ("end_time", task.end_time),
        ("deadline", task.deadline),
    )
    return ";".join(f"{key}={value or ''}" for key, value in fields)


@dataclass
class NormalizerOptions:
    """Filters and context applied to one normalization pass."""

    complete_status_chars: FrozenSet[str] = frozenset({"x", "X", "-", "!"})
    include_parsers: FrozenSet[str] = frozenset(SUPPORTED_PARSERS)
    include_done: bool = True
    include_raw: bool = False
    keep_done_days: int = 0
    snapshot_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_config(cls, config: IndexConfig, snapshot_at: Optional[datetime] = None) -> NormalizerOptions:
        settings = config.index
        return cls(
            complete_status_chars=frozenset(config.complete_status_chars),
            include_parsers=frozenset(settings.include_parsers),
            include_done=settings.include_done,
            include_raw=settings.include_raw,
            keep_done_days=settings.keep_done_days,
            snapshot_at=snapshot_at or datetime.now(timezone.utc),
        )

    @property
    def retention_cutoff(self):
        """Oldest calendar day (local time) still kept for closed tasks."""
        local_day = self.snapshot_at.astimezone().date()
        return local_day - timedelta(days=self.keep_done_days)


class TaskNormalizer:
    """Converts raw task records into hashed, exportable rows."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    hash_text = staticmethod(hash_text)
    normalize_parser = staticmethod(normalize_parser)

    def normalize_tasks(
        self, tasks: Iterable[Task], options: NormalizerOptions
    ) -> Dict[str, List[NormalizedTask]]:
        """Normalize ``tasks`` and group the survivors by source path.

        Within a path rows are ordered by line (file-level rows last), then
        by id. A duplicate id is logged and the later record wins.
        """
        buckets: Dict[str, Dict[str, Tuple[Optional[int], NormalizedTask]]] = {}

        for task in tasks:
            normalized = self.normalize_task(task, options)
            if normalized is None:
                continue

            bucket = buckets.setdefault(normalized.source_path, {})
            if normalized.id in bucket:
                self.logger.warning(
                    f"Duplicate task id in {normalized.source_path}: {normalized.id}"
                )
            sort_line = task.line if task.line is not None and task.line >= 0 else None
            bucket[normalized.id] = (sort_line, normalized)

        result: Dict[str, List[NormalizedTask]] = {}
        for path, entries in buckets.items():
            ordered = sorted(
                entries.values(),
                key=lambda entry: (entry[0] is None, entry[0] or 0, entry[1].id),
            )
            result[path] = [normalized for _, normalized in ordered]
        return result

    def normalize_task(self, task: Task, options: NormalizerOptions) -> Optional[NormalizedTask]:
        """Return the exported row for ``task`` or None when a filter drops it."""
        parser = normalize_parser(task.parser_id)
        if parser not in options.include_parsers:
            return None

        status = resolve_status(task.status_char, options.complete_status_chars)
        if not status.is_open:
            if not options.include_done:
                return None
            if options.keep_done_days > 0 and not self._within_retention(task, options):
                return None

        source_path = normalize_relative_path(task.file)
        content = task.content.strip() if task.content else ""
        if not content:
            content = file_base_name(source_path)

        if task.tags:
            tags = normalize_tags(task.tags)
        else:
            tags = normalize_tags(extract_tags(content))

        locator = resolve_anchor(task, parser)
        task_id = f"{parser}:{source_path}:{locator}"
        start = combine_date_time(task.start_date, task.start_time)
        end = combine_date_time(task.end_date, task.end_time)
        deadline = task.deadline.strip() if task.deadline and task.deadline.strip() else None

        raw = None
        if options.include_raw:
            original = (task.original_text or "").strip()
            raw = original or build_file_level_raw(task)

        # Positional fields; the order is part of the hash format
        fingerprint = json.dumps(
            [
                parser,
                source_path,
                locator,
                status.value,
                content,
                start or "",
                end or "",
                deadline or "",
                ",".join(tags),
                raw or "",
            ],
            ensure_ascii=False,
            separators=(",", ":"),
        )

        return NormalizedTask(
            id=task_id,
            content_hash=hash_text(fingerprint),
            parser=parser,
            source_path=source_path,
            locator=locator,
            status=status.value,
            content=content,
            start=start,
            end=end,
            deadline=deadline,
            tags=tags,
            raw=raw,
        )

    def hash_tasks_for_path(self, tasks: Iterable[NormalizedTask]) -> str:
        entries = sorted(f"{task.id}:{task.content_hash}" for task in tasks)
        return hash_text("\n".join(entries))

    def _within_retention(self, task: Task, options: NormalizerOptions) -> bool:
        proxy = task.end_date or task.start_date or task.deadline
        proxy_date = parse_date(proxy)
        if proxy_date is None:
            return True
        return proxy_date >= options.retention_cutoff
