"""JSON payload conversion for staged and committed import records.

This module centralizes record serialization so the stager, the batch
engine, and the CLI agree on the stored layout.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from core.errors import CorruptPayloadError
from core.types import DailyScheduleRecord, PTORequestRecord, StagingRecord


def staging_record_to_payload(record: StagingRecord) -> dict[str, object]:
    """Serialize one staged row.

    Args:
        record: Valid staging record.

    Returns:
        Dictionary payload for JSON encoding.
    """
    return {
        "row_number": record.row_number,
        "fields": dict(record.fields),
        "duplicate_of": record.duplicate_of,
    }


def staging_record_from_payload(payload: Any) -> StagingRecord:
    """Deserialize one staged row.

    Raises:
        CorruptPayloadError: If payload is not a staged row object.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("fields"), dict):
        raise CorruptPayloadError("Staged row payload must be an object with a 'fields' object.")
    duplicate_of = payload.get("duplicate_of")
    return StagingRecord(
        row_number=int(payload.get("row_number", 0)),
        fields=dict(payload["fields"]),
        duplicate_of=int(duplicate_of) if duplicate_of is not None else None,
    )


def staged_rows_from_payload(payload: Any) -> list[StagingRecord]:
    """Deserialize the staged dataset.

    Raises:
        CorruptPayloadError: If payload is not a list of staged rows.
    """
    if not isinstance(payload, list):
        raise CorruptPayloadError("Staged dataset must be a list of rows.")
    return [staging_record_from_payload(item) for item in payload]


def collection_from_payload(collection_name: str, payload: Any) -> list[dict[str, Any]]:
    """Validate a destination collection loaded from storage.

    Args:
        collection_name: Collection key, for error messages.
        payload: Loaded value, or None when the collection is absent.

    Returns:
        Mutable list of record dictionaries.

    Raises:
        CorruptPayloadError: If the stored collection is not a list of objects.
    """
    if payload is None:
        return []
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise CorruptPayloadError(f"Collection '{collection_name}' must be a list of objects.")
    return list(payload)


def request_record_to_payload(record: PTORequestRecord) -> dict[str, object]:
    return asdict(record)


def schedule_record_to_payload(record: DailyScheduleRecord) -> dict[str, object]:
    return asdict(record)
