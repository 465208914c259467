"""Shared typed models.

This module defines the data models used by the store, staging,
and batch engine layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Mapping

RowErrorKind = Literal["validation", "unresolved_identity"]


@dataclass(frozen=True)
class ChunkMetadata:
    """Metadata stored beside a chunked entry.

    Attributes:
        total_chunks: Number of chunk keys written.
        total_size: Serialized text length in characters.
        timestamp: UTC ISO timestamp of the write.
        chunked: Marker distinguishing chunked entries.
    """

    total_chunks: int
    total_size: int
    timestamp: str
    chunked: bool = True


@dataclass(frozen=True)
class StoreResult:
    """Outcome of one ChunkStore write."""

    key: str
    chunks: int
    total_size: int


@dataclass(frozen=True)
class DirectoryIdentity:
    """Resolved directory identity.

    Attributes:
        identity: Opaque account reference.
        display_name: Human-readable name.
        email: Email address as recorded in the directory.
    """

    identity: str
    display_name: str
    email: str


@dataclass(frozen=True)
class ValidationOptions:
    """Options for one ImportStager validation pass.

    Attributes:
        resolve_identities: Resolve requester and manager emails and enrich rows.
    """

    resolve_identities: bool = False


@dataclass(frozen=True)
class StagingRecord:
    """One validated import row, optionally enriched.

    Attributes:
        row_number: One-based position in the submitted rows.
        fields: Normalized raw row fields plus enrichment fields.
        is_valid: Whether the row passed validation.
        reasons: Human-readable validation reasons.
        duplicate_of: Row number of an earlier row with the same composite key.
    """

    row_number: int
    fields: Mapping[str, object]
    is_valid: bool = True
    reasons: tuple[str, ...] = ()
    duplicate_of: int | None = None


@dataclass(frozen=True)
class RowError:
    """Per-row validation error entry."""

    row: int
    kind: RowErrorKind
    reasons: tuple[str, ...]
    data: Mapping[str, str]


@dataclass(frozen=True)
class RowWarning:
    """Per-row non-blocking warning, used for duplicates."""

    row: int
    duplicate_of: int
    key: str


@dataclass(frozen=True)
class ValidationReport:
    """Result of validating a batch of import rows.

    Attributes:
        total_records: Number of submitted rows.
        valid_records: Accepted rows in submission order.
        invalid_records: Number of rejected rows.
        errors: One entry per rejected row.
        warnings: Non-blocking duplicate warnings.
        messages: Report-level problems not tied to one row.
    """

    total_records: int
    valid_records: tuple[StagingRecord, ...]
    invalid_records: int
    errors: tuple[RowError, ...]
    warnings: tuple[RowWarning, ...] = ()
    messages: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        """Return whether every submitted row was accepted."""
        return self.total_records > 0 and self.invalid_records == 0


@dataclass(frozen=True)
class RowFailure:
    """Per-row synthesis failure keyed by global staged row index."""

    index: int
    error: str


@dataclass(frozen=True)
class BatchProgress:
    """Persisted cursor for one batch import run.

    Attributes:
        current_batch: Number of batches committed so far.
        total_batches: Number of batches in the run.
        total_records: Number of staged rows in the run.
        imported_records: Rows committed to destination collections.
        errors: Accumulated per-row synthesis failures.
    """

    current_batch: int
    total_batches: int
    total_records: int = 0
    imported_records: int = 0
    errors: tuple[RowFailure, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ImportSummary:
    """Final summary returned by the last engine invocation."""

    total_records: int
    imported_records: int
    failed_records: int
    errors: tuple[RowFailure, ...]


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one engine invocation.

    Attributes:
        finished: Whether the run completed with this invocation.
        progress: Cursor after this invocation; on the last call it reports
            current_batch == total_batches.
        result: Final summary when finished.
    """

    finished: bool
    progress: BatchProgress | None = None
    result: ImportSummary | None = None


@dataclass(frozen=True)
class PTORequestRecord:
    """Single-day PTO request synthesized from one staged row."""

    id: str
    requester_id: str
    requester_name: str
    requester_email: str
    manager_id: str
    manager_name: str
    manager_email: str
    start_date: str
    end_date: str
    leave_type: str
    reason: str
    status: str
    total_days: float
    total_hours: float
    submitted_at: str
    created_at: str
    updated_at: str
    imported: bool = True


@dataclass(frozen=True)
class DailyScheduleRecord:
    """Daily schedule entry linked to one synthesized request."""

    id: str
    pto_request_id: str
    date: str
    schedule_type: str
    hours: float
    created_at: str
