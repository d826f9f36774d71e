"""Exception hierarchy shared by the synchronisation components.

Two channels exist.  :class:`ConfigurationError` is fatal and aborts a run
before any row is touched.  Every other error is scoped to a single row: the
caller converts it into an error mark on that row and moves on.
"""
from __future__ import annotations

from typing import Iterable, List, Optional


class SyncError(Exception):
    """Base class for all adsync errors."""


class ConfigurationError(SyncError):
    """Raised when the sheet layout or settings are unusable."""


class RowValidationError(SyncError):
    """Raised when a cell holds content that cannot be interpreted."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class CreationValidationError(SyncError):
    """Collected problems preventing a replacement ad from being created."""

    def __init__(self, messages: Iterable[str]) -> None:
        self.messages: List[str] = [str(message) for message in messages]
        super().__init__("; ".join(self.messages))


class PlatformOperationError(SyncError):
    """Raised when the ad platform rejects or fails an operation."""


class ReadOnlyViolation(SyncError):
    """Raised when an edit targets a cell that may not be changed."""

    def __init__(self, field: str, row_index: int) -> None:
        super().__init__(f"{field} is read-only (and may populate automatically).")
        self.field = field
        self.row_index = row_index


class BucketStorageError(SyncError):
    """Raised when a persisted bucket snapshot cannot be decoded."""


__all__ = [
    "BucketStorageError",
    "ConfigurationError",
    "CreationValidationError",
    "PlatformOperationError",
    "ReadOnlyViolation",
    "RowValidationError",
    "SyncError",
]
