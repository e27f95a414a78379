"""
obs-index - incremental NDJSON export of Obsidian vault tasks.
"""

__version__ = "0.4.0"
