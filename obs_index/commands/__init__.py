"""
Command implementations for obs-index.
"""

from .setup import SetupCommand
from .rebuild import RebuildCommand
from .watch import WatchCommand
from .status import StatusCommand
from .open import OpenCommand

__all__ = [
    'SetupCommand',
    'RebuildCommand',
    'WatchCommand',
    'StatusCommand',
    'OpenCommand',
]
