"""
Exception classes for obs-index.
"""


class ObsIndexError(Exception):
    """Base exception for all obs-index errors."""
    pass


class VaultNotFoundError(ObsIndexError):
    """Raised when an Obsidian vault cannot be found."""
    pass


class NotInitializedError(ObsIndexError):
    """Raised when a component is used before it has been initialized."""
    pass


class WriteFailure(ObsIndexError):
    """Raised when the index snapshot could not be persisted.

    ``retryable`` is True when the underlying cause looked transient
    (busy, locked or permission-denied files).
    """

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable
