"""Persisted batch import cursor.

This module stores the singleton BatchProgress record of the current run
so the next stateless invocation knows which slice to process and a UI
can render completion percentage.
"""

from __future__ import annotations

from typing import Any

from core.constants import PROGRESS_KEY
from core.errors import CorruptPayloadError
from core.types import BatchProgress, RowFailure
from store.chunk_store import ChunkStore


class ProgressTracker:
    """Read and write the batch import cursor through ChunkStore."""

    def __init__(self, chunk_store: ChunkStore, key: str = PROGRESS_KEY) -> None:
        self._chunk_store = chunk_store
        self._key = key

    def read(self) -> BatchProgress | None:
        """Return the persisted cursor, or None when no run is recorded.

        Raises:
            CorruptPayloadError: If the stored cursor is malformed.
        """
        payload = self._chunk_store.load(self._key)
        if payload is None:
            return None
        return progress_from_payload(payload)

    def write(self, progress: BatchProgress) -> None:
        """Persist the cursor."""
        self._chunk_store.store(self._key, progress_to_payload(progress))

    def clear(self) -> int:
        """Delete the cursor and return the number of removed keys."""
        return self._chunk_store.remove(self._key)

    def percent_complete(self) -> float:
        """Return completion percentage of the recorded run, 0.0 when absent."""
        progress = self.read()
        if progress is None or progress.total_batches <= 0:
            return 0.0
        fraction = progress.current_batch / progress.total_batches
        return round(min(1.0, max(0.0, fraction)) * 100.0, 1)


def progress_to_payload(progress: BatchProgress) -> dict[str, object]:
    """Serialize BatchProgress into its stored layout."""
    return {
        "currentBatch": progress.current_batch,
        "totalBatches": progress.total_batches,
        "totalRecords": progress.total_records,
        "importedRecords": progress.imported_records,
        "errors": [{"index": failure.index, "error": failure.error} for failure in progress.errors],
    }


def progress_from_payload(payload: Any) -> BatchProgress:
    """Deserialize BatchProgress from its stored layout.

    Raises:
        CorruptPayloadError: If payload fields are missing or invalid.
    """
    if not isinstance(payload, dict):
        raise CorruptPayloadError("Stored batch progress is not an object.")
    try:
        errors = tuple(
            RowFailure(index=int(item["index"]), error=str(item["error"]))
            for item in payload.get("errors", [])
        )
        return BatchProgress(
            current_batch=int(payload["currentBatch"]),
            total_batches=int(payload["totalBatches"]),
            total_records=int(payload.get("totalRecords", 0)),
            imported_records=int(payload.get("importedRecords", 0)),
            errors=errors,
        )
    except (KeyError, TypeError, ValueError) as error:
        raise CorruptPayloadError(f"Stored batch progress is malformed: {error}.") from error
