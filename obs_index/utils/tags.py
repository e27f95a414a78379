"""
Helpers for inline ``#tag`` tokens.
"""

import re
from typing import Iterable, List, Optional

# Allow hyphenated and nested tags so markers like #area/home-office stick together
TAG_RE = re.compile(r'(?<![\w#])#([^\s#]+)')


def extract_tags(content: Optional[str]) -> List[str]:
    """Return the ``#tag`` tokens found in ``content`` (without the ``#``)."""
    if not content:
        return []
    return [match.group(1) for match in TAG_RE.finditer(content)]


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Strip leading ``#``, drop blanks, deduplicate and sort."""
    cleaned = set()
    for tag in tags:
        if not isinstance(tag, str):
            continue
        name = tag.strip().lstrip('#').strip()
        if name:
            cleaned.add(name)
    return sorted(cleaned)
