"""
Sync Errors — Failure taxonomy for the synchronization engine.

- ListingError: a registry could not be enumerated. Fatal to the run.
- TransferError: a single image failed to mirror. Absorbed by the pool.
- CommitError: the changelog could not be committed. Propagated.
- IntakeClosedError: a record was submitted after the intake closed.

Deadline expiry is not an error; it is reported on the SyncReport.
"""

from __future__ import annotations

from typing import Any, Optional


class GcrSyncError(Exception):
    """Base class for all sync engine errors."""


class ListingError(GcrSyncError):
    """Raised when a registry listing cannot be obtained."""

    def __init__(self, registry: str, message: str):
        self.registry = registry
        super().__init__(f"{registry}: {message}")


class TransferError(GcrSyncError):
    """Raised by a transfer executor when one image fails to mirror."""

    def __init__(self, image: str, message: str):
        self.image = image
        super().__init__(f"{image}: {message}")


class CommitError(GcrSyncError):
    """Raised when the changelog batch could not be committed."""

    def __init__(self, message: str, report: Optional[Any] = None):
        self.report = report
        super().__init__(message)


class IntakeClosedError(GcrSyncError):
    """Raised when a completion record arrives after the intake closed."""
