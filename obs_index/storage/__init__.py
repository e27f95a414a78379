"""
Storage capability and atomic file operations.
"""

from .adapter import FileAdapter, is_retryable_error
from .filesystem import DurableFileSystem, LocalFileSystem

__all__ = [
    'FileAdapter',
    'is_retryable_error',
    'DurableFileSystem',
    'LocalFileSystem',
]
