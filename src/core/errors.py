"""pto-import exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
Per-row validation problems are collected, never raised.
"""

from __future__ import annotations


class PtoImportError(Exception):
    """Base exception for all pto-import failures."""


class ImportConfigError(PtoImportError):
    """Raised for invalid runtime configuration."""


class ImportDependencyError(PtoImportError):
    """Raised when an optional runtime dependency is missing."""


class StoreError(PtoImportError):
    """Raised for key-value storage failures."""


class MissingChunkError(StoreError):
    """Raised when a chunk is absent during reassembly."""


class CorruptPayloadError(StoreError):
    """Raised when reassembled text cannot be deserialized."""


class OversizeWriteError(StoreError):
    """Raised when one stored unit exceeds the backend item ceiling."""


class BackendKeyError(StoreError):
    """Raised when a backend is asked to delete an absent key."""


class ImportInputError(PtoImportError):
    """Raised when an import rows file cannot be read."""


class DirectoryError(PtoImportError):
    """Raised when the identity directory is unavailable or malformed."""


class ImportRunError(PtoImportError):
    """Raised for invalid batch engine invocations."""


class BatchWriteFailure(PtoImportError):
    """Raised when committing one batch to storage fails.

    Batches committed by earlier invocations remain durable.
    """

    def __init__(self, message: str, batch_index: int, committed_records: int) -> None:
        super().__init__(message)
        self.batch_index = batch_index
        self.committed_records = committed_records
