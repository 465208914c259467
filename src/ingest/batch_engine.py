"""Resumable batch import of staged PTO rows.

This module commits the staged dataset into the request and daily schedule
collections one fixed-size slice per invocation. Invocations share no
memory: every call reloads the staged rows, the destination collections,
and the persisted cursor through ChunkStore.

Run states: not started -> running (k of n) -> done, with failed reachable
from running. Batch index 0 always starts a fresh run and clears the
destination collections first.
"""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any, Mapping

from core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_IMPORT_REASON,
    DEFAULT_IMPORT_STATUS,
    DEFAULT_SCHEDULE_TYPE,
    FULL_DAY_HOURS,
    HASH_ALGORITHM,
    REQUEST_ID_PREFIX,
    REQUESTS_KEY,
    SCHEDULE_ID_PREFIX,
    SCHEDULES_KEY,
    STAGING_KEY,
)
from core.errors import BatchWriteFailure, ImportRunError, StoreError
from core.logging_config import get_logger
from core.types import (
    BatchOutcome,
    BatchProgress,
    DailyScheduleRecord,
    ImportSummary,
    PTORequestRecord,
    RowFailure,
    StagingRecord,
)
from ingest.record_payload import (
    collection_from_payload,
    request_record_to_payload,
    schedule_record_to_payload,
    staged_rows_from_payload,
)
from store.chunk_store import ChunkStore
from store.progress_tracker import ProgressTracker

_LOGGER = get_logger(__name__)


class BatchImportEngine:
    """Persisted-cursor state machine over the staged dataset."""

    def __init__(
        self,
        chunk_store: ChunkStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress_tracker: ProgressTracker | None = None,
        staging_key: str = STAGING_KEY,
        requests_key: str = REQUESTS_KEY,
        schedules_key: str = SCHEDULES_KEY,
    ) -> None:
        if batch_size <= 0:
            raise ImportRunError(f"Invalid batch size {batch_size}: expected > 0.")
        self._chunk_store = chunk_store
        self._batch_size = batch_size
        self._progress = progress_tracker or ProgressTracker(chunk_store)
        self._staging_key = staging_key
        self._requests_key = requests_key
        self._schedules_key = schedules_key

    def run_batch(self, batch_index: int) -> BatchOutcome:
        """Process one slice of the staged dataset.

        Args:
            batch_index: Zero-based batch index. Zero starts a fresh run;
                later indices must equal the persisted cursor.

        Returns:
            Outcome with the updated cursor, plus the final summary on the
            last batch.

        Raises:
            ImportRunError: If the invocation does not match the run state.
            BatchWriteFailure: If committing the batch to storage fails.
        """
        if batch_index < 0:
            raise ImportRunError(f"Invalid batch index {batch_index}: expected >= 0.")
        if batch_index == 0:
            staged_rows, progress = self._start_run()
        else:
            staged_rows, progress = self._resume_run(batch_index)
        if progress.total_batches == 0:
            return self._finish(progress)
        start = batch_index * self._batch_size
        batch_rows = staged_rows[start : start + self._batch_size]
        requests = self._load_collection(self._requests_key)
        schedules = self._load_collection(self._schedules_key)
        failures: list[RowFailure] = []
        imported_count = 0
        for offset, row in enumerate(batch_rows):
            row_index = start + offset
            try:
                request, schedule = synthesize_records(row, row_index)
            except (TypeError, ValueError) as error:
                failures.append(RowFailure(index=row_index, error=str(error)))
                _LOGGER.warning("import_row_failed", row_index=row_index, error=str(error))
                continue
            requests.append(request_record_to_payload(request))
            schedules.append(schedule_record_to_payload(schedule))
            imported_count += 1
        updated_progress = BatchProgress(
            current_batch=batch_index + 1,
            total_batches=progress.total_batches,
            total_records=progress.total_records,
            imported_records=progress.imported_records + imported_count,
            errors=progress.errors + tuple(failures),
        )
        self._commit(batch_index, requests, schedules, updated_progress, progress.imported_records)
        _LOGGER.info(
            "import_batch_committed",
            batch=updated_progress.current_batch,
            total_batches=updated_progress.total_batches,
            imported_in_batch=imported_count,
            failed_in_batch=len(failures),
            imported_records=updated_progress.imported_records,
        )
        if updated_progress.current_batch < updated_progress.total_batches:
            return BatchOutcome(finished=False, progress=updated_progress)
        return self._finish(updated_progress)

    def _start_run(self) -> tuple[list[StagingRecord], BatchProgress]:
        staged_rows = self._load_staged_rows()
        total_batches = math.ceil(len(staged_rows) / self._batch_size)
        self._chunk_store.remove(self._requests_key)
        self._chunk_store.remove(self._schedules_key)
        progress = BatchProgress(
            current_batch=0,
            total_batches=total_batches,
            total_records=len(staged_rows),
        )
        try:
            self._progress.write(progress)
        except StoreError as error:
            raise BatchWriteFailure(
                f"Failed to initialize import progress: {error}. No records were committed.",
                batch_index=0,
                committed_records=0,
            ) from error
        _LOGGER.info(
            "import_run_started",
            total_records=len(staged_rows),
            total_batches=total_batches,
            batch_size=self._batch_size,
        )
        return staged_rows, progress

    def _resume_run(self, batch_index: int) -> tuple[list[StagingRecord], BatchProgress]:
        progress = self._progress.read()
        if progress is None:
            raise ImportRunError(
                f"Cannot run batch {batch_index}: no import run in progress. "
                "Start a new run at batch 0."
            )
        if batch_index != progress.current_batch:
            raise ImportRunError(
                f"Cannot run batch {batch_index}: the run expects batch "
                f"{progress.current_batch} of {progress.total_batches}. "
                "Continue with the expected batch or restart at batch 0."
            )
        if progress.current_batch >= progress.total_batches:
            raise ImportRunError(
                f"Cannot run batch {batch_index}: all {progress.total_batches} batches "
                "are committed. Restart at batch 0."
            )
        staged_rows = self._load_staged_rows()
        if len(staged_rows) != progress.total_records:
            raise ImportRunError(
                f"Staged dataset changed during the run ({len(staged_rows)} rows, "
                f"run started with {progress.total_records}). Restart at batch 0."
            )
        return staged_rows, progress

    def _load_staged_rows(self) -> list[StagingRecord]:
        payload = self._chunk_store.load(self._staging_key)
        if payload is None:
            raise ImportRunError(
                f"No staged import rows found under '{self._staging_key}'. "
                "Validate and stage rows before running the import."
            )
        return staged_rows_from_payload(payload)

    def _load_collection(self, collection_key: str) -> list[dict[str, Any]]:
        return collection_from_payload(collection_key, self._chunk_store.load(collection_key))

    def _commit(
        self,
        batch_index: int,
        requests: list[dict[str, Any]],
        schedules: list[dict[str, Any]],
        progress: BatchProgress,
        committed_records: int,
    ) -> None:
        try:
            self._chunk_store.store(self._requests_key, requests)
            self._chunk_store.store(self._schedules_key, schedules)
            self._progress.write(progress)
        except StoreError as error:
            _LOGGER.error(
                "import_batch_write_failed",
                batch_index=batch_index,
                committed_records=committed_records,
                error=str(error),
            )
            raise BatchWriteFailure(
                f"Failed to commit batch {batch_index}: {error}. "
                f"{committed_records} records from earlier batches remain committed; "
                "restart the import at batch 0.",
                batch_index=batch_index,
                committed_records=committed_records,
            ) from error

    def _finish(self, progress: BatchProgress) -> BatchOutcome:
        self._chunk_store.remove(self._staging_key)
        self._progress.clear()
        summary = ImportSummary(
            total_records=progress.total_records,
            imported_records=progress.imported_records,
            failed_records=len(progress.errors),
            errors=progress.errors,
        )
        _LOGGER.info(
            "import_run_completed",
            total_records=summary.total_records,
            imported_records=summary.imported_records,
            failed_records=summary.failed_records,
        )
        return BatchOutcome(finished=True, progress=progress, result=summary)


def synthesize_records(
    row: StagingRecord,
    row_index: int,
) -> tuple[PTORequestRecord, DailyScheduleRecord]:
    """Build the single-day request and its schedule entry for one staged row.

    Ids are derived from the row index and content, so rerunning a staged
    dataset reproduces identical records.

    Args:
        row: Staged row with enriched fields.
        row_index: Zero-based global position in the staged dataset.

    Returns:
        Request record and linked daily schedule record.

    Raises:
        ValueError: If a required field is missing or malformed.
    """
    fields = row.fields
    digest = _record_digest(fields, row_index)
    requester_email = _require(fields, "requester_email")
    manager_email = _require(fields, "manager_email")
    date_value = _require(fields, "date")
    created_at = _require(fields, "created_at")
    schedule_type = str(fields.get("schedule_type") or DEFAULT_SCHEDULE_TYPE)
    hours = float(fields.get("hours") or FULL_DAY_HOURS)
    request = PTORequestRecord(
        id=f"{REQUEST_ID_PREFIX}-{digest}",
        requester_id=_require(fields, "requester_id"),
        requester_name=str(fields.get("requester_name") or requester_email),
        requester_email=requester_email,
        manager_id=_require(fields, "manager_id"),
        manager_name=str(fields.get("manager_name") or manager_email),
        manager_email=manager_email,
        start_date=date_value,
        end_date=date_value,
        leave_type=_require(fields, "leave_type"),
        reason=str(fields.get("reason") or DEFAULT_IMPORT_REASON),
        status=str(fields.get("status") or DEFAULT_IMPORT_STATUS),
        total_days=1,
        total_hours=hours,
        submitted_at=created_at,
        created_at=created_at,
        updated_at=created_at,
    )
    schedule = DailyScheduleRecord(
        id=f"{SCHEDULE_ID_PREFIX}-{digest}",
        pto_request_id=request.id,
        date=date_value,
        schedule_type=schedule_type,
        hours=hours,
        created_at=created_at,
    )
    return request, schedule


def _require(fields: Mapping[str, object], name: str) -> str:
    value = fields.get(name)
    if value is None or value == "":
        raise ValueError(f"Missing {name}")
    return str(value)


def _record_digest(fields: Mapping[str, object], row_index: int) -> str:
    seed = json.dumps({"index": row_index, "fields": dict(fields)}, sort_keys=True, default=str)
    return hashlib.new(HASH_ALGORITHM, seed.encode("utf-8")).hexdigest()[:16]
