"""
Date parsing and formatting utilities.
"""

import re
from datetime import date, datetime
from typing import Optional


TIME_RE = re.compile(r'^(\d{1,2}):(\d{2})(?::\d{2})?$')


def parse_date(date_str: Optional[str]) -> Optional[date]:
    """
    Parse a date string into a date object.
    
    Handles various formats:
    - ISO format (YYYY-MM-DD)
    - ISO datetime (YYYY-MM-DDTHH:MM:SS)
    - Single digit month/day (YYYY-M-D)
    
    Args:
        date_str: Date string to parse
    
    Returns:
        Parsed date object or None if invalid
    """
    if not date_str or not isinstance(date_str, str):
        return None

    date_str = date_str.strip()

    # Take only date part if it's a datetime string
    if 'T' in date_str:
        date_str = date_str.split('T')[0]
    elif ' ' in date_str:
        date_str = date_str.split(' ')[0]

    # Remove timezone if present
    date_str = date_str.split('+')[0].split('Z')[0]

    try:
        return datetime.strptime(date_str, '%Y-%m-%d').date()
    except ValueError:
        pass

    try:
        parts = date_str.split('-')
        if len(parts) == 3:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except (ValueError, IndexError):
        pass

    return None


def format_date(d: Optional[date]) -> Optional[str]:
    """Format a date object as ISO string (YYYY-MM-DD)."""
    if not d:
        return None
    return d.strftime('%Y-%m-%d')


def normalize_time(value: Optional[str]) -> Optional[str]:
    """Return ``HH:MM`` for a clock time string, or None when it is not one."""
    if not value or not isinstance(value, str):
        return None
    match = TIME_RE.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def combine_date_time(date_str: Optional[str], time_str: Optional[str]) -> Optional[str]:
    """
    Combine a date and an optional time into ``DATE`` or ``DATETHH:MM``.

    A time without a date is dropped.
    """
    if not date_str:
        return None
    time_part = normalize_time(time_str)
    if time_part:
        return f"{date_str}T{time_part}"
    return date_str
