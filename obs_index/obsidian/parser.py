"""
Markdown task parsing utilities.
"""

import re
from typing import Optional, Tuple

from ..core.models import Task
from ..utils.date import format_date, normalize_time, parse_date
from ..utils.tags import extract_tags


# Regular expressions for parsing tasks
TASK_RE = re.compile(r'^(\s*)(?:[-*+]|\d+[.)])\s+\[(.)\]\s*(.*)$')
BLOCK_ID_RE = re.compile(r'(?:^|\s)\^([a-zA-Z0-9-]+)\s*$')
START_DATE_RE = re.compile(r'🛫\s*(\d{4}-\d{1,2}-\d{1,2})(?:\s+(\d{1,2}:\d{2}))?')
COMPLETION_DATE_RE = re.compile(r'✅\s*(\d{4}-\d{1,2}-\d{1,2})(?:\s+(\d{1,2}:\d{2}))?')
DUE_DATE_RE = re.compile(r'📅\s*(\d{4}-\d{1,2}-\d{1,2})(?:\s+(\d{1,2}:\d{2}))?')
WHITESPACE_RE = re.compile(r'\s{2,}')

# Block ids with this prefix double as timer target ids
TIMER_TARGET_PREFIX = "timer-target-"


def _take_date(pattern: re.Pattern, content: str) -> Tuple[Optional[str], Optional[str], str]:
    """Extract the first ``pattern`` match as (date, time) and remove it from ``content``."""
    match = pattern.search(content)
    if not match:
        return None, None, content
    date_value = format_date(parse_date(match.group(1)))
    time_value = normalize_time(match.group(2)) if date_value else None
    content = content[:match.start()] + content[match.end():]
    return date_value, time_value, content


def parse_task_line(line: str, file: str, line_number: int) -> Optional[Task]:
    """
    Parse a markdown checkbox line into a ``Task``.

    Args:
        line: Raw markdown line (without trailing newline)
        file: Vault-relative path of the note
        line_number: 0-based line index within the note

    Returns:
        Task record or None if the line is not a task
    """
    match = TASK_RE.match(line)
    if not match:
        return None

    status_char = match.group(2)
    content = match.group(3)

    block_id = None
    block_match = BLOCK_ID_RE.search(content)
    if block_match:
        block_id = block_match.group(1)
        content = content[:block_match.start()].rstrip()

    start_date, start_time, content = _take_date(START_DATE_RE, content)
    end_date, end_time, content = _take_date(COMPLETION_DATE_RE, content)
    due_date, due_time, content = _take_date(DUE_DATE_RE, content)

    deadline = None
    if due_date:
        deadline = f"{due_date}T{due_time}" if due_time else due_date

    content = WHITESPACE_RE.sub(' ', content).strip()

    timer_target_id = None
    if block_id and block_id.startswith(TIMER_TARGET_PREFIX):
        timer_target_id = block_id

    return Task(
        file=file,
        line=line_number,
        content=content,
        status_char=status_char,
        parser_id="checkbox",
        start_date=start_date,
        start_time=start_time,
        end_date=end_date,
        end_time=end_time,
        deadline=deadline,
        tags=extract_tags(content),
        original_text=line,
        block_id=block_id,
        timer_target_id=timer_target_id,
    )
