"""
Core module for obs-index - contains domain models, configuration, and exceptions.
"""

from .models import (
    Task,
    TaskStatus,
    NormalizedTask,
    IndexMeta,
    PathTransition,
    ProbeResult
)

from .config import (
    IndexConfig,
    IndexSettings,
    resolve_output_path,
    load_config,
    save_config
)

from .exceptions import (
    ObsIndexError,
    VaultNotFoundError,
    NotInitializedError,
    WriteFailure
)

__all__ = [
    # Models
    'Task',
    'TaskStatus',
    'NormalizedTask',
    'IndexMeta',
    'PathTransition',
    'ProbeResult',
    # Configuration
    'IndexConfig',
    'IndexSettings',
    'resolve_output_path',
    'load_config',
    'save_config',
    # Exceptions
    'ObsIndexError',
    'VaultNotFoundError',
    'NotInitializedError',
    'WriteFailure'
]
