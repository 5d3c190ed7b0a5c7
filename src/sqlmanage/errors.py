"""Exception types raised by the worklist store."""

from __future__ import annotations


class StorageError(Exception):
    """A failure reported by the underlying SQLite store.

    Always raised with the original ``sqlite3.Error`` chained as ``__cause__``.
    The batch or statement that failed has been rolled back.
    """

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {cause}")


class ValidationError(ValueError):
    """Malformed input rejected before the store is touched."""
