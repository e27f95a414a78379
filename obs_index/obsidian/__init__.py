"""
Obsidian integration module for obs-index.
"""

from .vault import VaultTaskSource, parse_note
from .parser import parse_task_line
from .frontmatter import parse_frontmatter_task, read_frontmatter

__all__ = [
    'VaultTaskSource',
    'parse_note',
    'parse_task_line',
    'parse_frontmatter_task',
    'read_frontmatter',
]
