"""
Incremental task index: normalization, change detection and durable writes.
"""

from .normalizer import NormalizerOptions, TaskNormalizer, hash_text, normalize_parser
from .output import OutputPathResolver
from .service import IndexService
from .store import IndexStore
from .timers import ThreadingTimer, Timer
from .writer import (
    INDEX_SCHEMA_VERSION,
    SerializedRows,
    SnapshotWriter,
    WriteBackoff,
    meta_path_for,
    serialize_tasks,
)

__all__ = [
    'NormalizerOptions',
    'TaskNormalizer',
    'hash_text',
    'normalize_parser',
    'OutputPathResolver',
    'IndexService',
    'IndexStore',
    'ThreadingTimer',
    'Timer',
    'INDEX_SCHEMA_VERSION',
    'SerializedRows',
    'SnapshotWriter',
    'WriteBackoff',
    'meta_path_for',
    'serialize_tasks',
]
