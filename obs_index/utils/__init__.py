"""
Utility helpers for obs-index.
"""

from .date import parse_date, format_date, normalize_time, combine_date_time
from .tags import extract_tags, normalize_tags

__all__ = [
    'parse_date',
    'format_date',
    'normalize_time',
    'combine_date_time',
    'extract_tags',
    'normalize_tags',
]
