"""
File-level tasks declared in YAML frontmatter.

A note is a task when its frontmatter carries ``start``, ``end`` or
``deadline``::

    ---
    status: x
    content: Quarterly review
    start: 2024-03-01
    end: 2024-03-02T17:30
    timer-target-id: review-q1
    ---
"""

import logging
import posixpath
import re
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

import yaml

from ..core.models import Task
from ..utils.date import format_date, normalize_time, parse_date


FRONTMATTER_RE = re.compile(r'\A---[ \t]*\r?\n(.*?\r?\n)?---[ \t]*(?:\r?\n|\Z)', re.DOTALL)
DATE_PART_RE = re.compile(r'(\d{4}-\d{1,2}-\d{1,2})')
TIME_PART_RE = re.compile(r'(\d{1,2}:\d{2})')

TASK_KEYS = ("start", "end", "deadline")
TIMER_TARGET_KEY = "timer-target-id"
MINUTES_PER_DAY = 24 * 60

logger = logging.getLogger(__name__)


def read_frontmatter(text: str) -> Optional[Dict[str, Any]]:
    """Return the frontmatter mapping of a note, or None when absent or invalid."""
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None
    try:
        data = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError as exc:
        logger.warning(f"Invalid frontmatter: {exc}")
        return None
    return data if isinstance(data, dict) else None


def normalize_yaml_value(value: Any) -> Optional[str]:
    """
    Flatten the types YAML produces for date-ish values into a string.

    ``2024-03-10`` loads as a date and ``14:00`` as the base-60 integer 840;
    both are turned back into ``YYYY-MM-DD`` / ``HH:MM`` text.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.hour == 0 and value.minute == 0:
            return value.strftime('%Y-%m-%d')
        return value.strftime('%Y-%m-%dT%H:%M')
    if isinstance(value, date):
        return value.strftime('%Y-%m-%d')
    if isinstance(value, int):
        if 0 <= value < MINUTES_PER_DAY:
            return f"{value // 60:02d}:{value % 60:02d}"
        return None
    text = str(value).strip()
    return text or None


def split_date_time(value: Any) -> Tuple[Optional[str], Optional[str]]:
    normalized = normalize_yaml_value(value)
    if not normalized:
        return None, None
    date_match = DATE_PART_RE.search(normalized)
    time_match = TIME_PART_RE.search(normalized)
    date_value = format_date(parse_date(date_match.group(1))) if date_match else None
    time_value = normalize_time(time_match.group(1)) if time_match else None
    return date_value, time_value


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_frontmatter_task(text: str, file: str) -> Optional[Task]:
    """Build the file-level task of a note, if its frontmatter declares one."""
    data = read_frontmatter(text)
    if not data or not any(key in data for key in TASK_KEYS):
        return None

    start_date, start_time = split_date_time(data.get("start"))
    end_date, end_time = split_date_time(data.get("end"))
    deadline_date, deadline_time = split_date_time(data.get("deadline"))

    if not (start_date or start_time or end_date or end_time or deadline_date):
        return None

    status = _text_or_none(data.get("status"))
    content = _text_or_none(data.get("content"))
    if content is None:
        content = posixpath.basename(file)
        if content.lower().endswith(".md"):
            content = content[:-3]

    deadline = None
    if deadline_date:
        deadline = f"{deadline_date}T{deadline_time}" if deadline_time else deadline_date

    raw_tags = data.get("tags")
    if isinstance(raw_tags, str):
        tags = raw_tags.replace(",", " ").split()
    elif isinstance(raw_tags, list):
        tags = [str(tag) for tag in raw_tags if tag is not None]
    else:
        tags = []

    return Task(
        file=file,
        line=-1,
        content=content,
        status_char=status[0] if status else " ",
        parser_id="frontmatter",
        start_date=start_date,
        start_time=start_time,
        end_date=end_date,
        end_time=end_time,
        deadline=deadline,
        tags=tags,
        original_text="",
        timer_target_id=_text_or_none(data.get(TIMER_TARGET_KEY)),
    )
