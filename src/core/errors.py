"""Tidelink exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class TidelinkError(Exception):
    """Base exception for all Tidelink failures."""


class TidelinkConfigError(TidelinkError):
    """Raised for invalid runtime configuration."""


class TidelinkIngestError(TidelinkError):
    """Raised for raw extraction and standardization failures."""


class TidelinkFormatError(TidelinkIngestError):
    """Raised when a file type has no raw extraction adapter."""


class TidelinkStoreError(TidelinkError):
    """Raised for aggregate store and file registry failures."""


class AggregateWriteConflict(TidelinkStoreError):
    """Raised when an insert collides with an existing composite key."""

    def __init__(self, composite_key: str) -> None:
        super().__init__(
            f"Aggregate with composite key '{composite_key}' already exists. "
            "Resolve the key again and merge as an update."
        )
        self.composite_key = composite_key


class TidelinkFileNotFoundError(TidelinkStoreError):
    """Raised when a registered file id is unknown."""


class TidelinkUnificationError(TidelinkError):
    """Raised when records cannot be merged into aggregates."""


class TidelinkExportError(TidelinkError):
    """Raised for aggregate export failures."""


class TidelinkDependencyError(TidelinkError):
    """Raised when an optional runtime dependency is missing."""


class TidelinkBatchSpecError(TidelinkError):
    """Raised for invalid or unsupported batch spec files."""
