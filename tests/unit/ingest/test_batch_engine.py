"""Unit tests for the resumable batch import engine."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import pytest

from core.constants import PROGRESS_KEY, REQUESTS_KEY, SCHEDULES_KEY, STAGING_KEY
from core.errors import BatchWriteFailure, ImportRunError, StoreError
from core.types import StagingRecord, ValidationOptions
from ingest.batch_engine import BatchImportEngine, synthesize_records
from ingest.identity_directory import load_directory_file
from ingest.import_stager import ImportStager
from ingest.input_reader import read_import_rows
from store.chunk_store import ChunkStore
from store.kv_backend import InMemoryBackend
from store.progress_tracker import ProgressTracker
from tests.fixture_paths import fixture_path

_FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class _SwitchableBackend(InMemoryBackend):
    """In-memory backend whose writes can be made to fail on demand."""

    def __init__(self, max_item_size: int) -> None:
        super().__init__(max_item_size)
        self.fail_writes = False

    def set(self, key: str, value: Any) -> None:
        if self.fail_writes:
            raise StoreError(f"simulated write failure for '{key}'")
        super().set(key, value)


def _staged_records() -> list[StagingRecord]:
    backend = InMemoryBackend(max_item_size=100_000)
    stager = ImportStager(
        ChunkStore(backend, 50_000),
        load_directory_file(fixture_path("directory.yaml")),
        clock=lambda: _FIXED_NOW,
    )
    rows = read_import_rows(fixture_path("rows/valid_rows.jsonl"))
    report = stager.validate(rows, ValidationOptions(resolve_identities=True))
    return list(report.valid_records)


def _engine(
    records: list[StagingRecord],
    batch_size: int = 5,
    backend: InMemoryBackend | None = None,
) -> tuple[BatchImportEngine, ChunkStore]:
    chunk_store = ChunkStore(backend or InMemoryBackend(max_item_size=100_000), 50_000)
    ImportStager(chunk_store).stage(records)
    return BatchImportEngine(chunk_store, batch_size=batch_size), chunk_store


def test_run_batch_twelve_rows_in_batches_of_five() -> None:
    """Twelve rows at batch size five should finish on the third call."""
    engine, chunk_store = _engine(_staged_records())

    outcomes = [engine.run_batch(index) for index in range(3)]

    assert [outcome.finished for outcome in outcomes] == [False, False, True]
    assert [outcome.progress.current_batch for outcome in outcomes] == [1, 2, 3]
    assert outcomes[2].result is not None and outcomes[2].result.imported_records == 12
    assert len(chunk_store.load(REQUESTS_KEY)) == 12
    assert len(chunk_store.load(SCHEDULES_KEY)) == 12


def test_run_batch_progress_is_monotonic() -> None:
    """Percent complete should grow with each committed batch."""
    engine, chunk_store = _engine(_staged_records())
    tracker = ProgressTracker(chunk_store)
    percentages = []

    for index in range(2):
        engine.run_batch(index)
        percentages.append(tracker.percent_complete())

    assert percentages == [33.3, 66.7]


def test_run_batch_persists_counts_in_progress() -> None:
    """The cursor should carry record counts between invocations."""
    engine, chunk_store = _engine(_staged_records())

    engine.run_batch(0)
    progress = ProgressTracker(chunk_store).read()

    assert progress is not None
    assert (progress.total_records, progress.imported_records) == (12, 5)


def test_run_batch_links_schedule_to_request() -> None:
    """Each schedule entry should reference its single-day request."""
    engine, chunk_store = _engine(_staged_records())

    for index in range(3):
        engine.run_batch(index)
    requests = chunk_store.load(REQUESTS_KEY)
    schedules = chunk_store.load(SCHEDULES_KEY)

    assert [item["pto_request_id"] for item in schedules] == [item["id"] for item in requests]
    assert all(item["start_date"] == item["end_date"] for item in requests)
    assert requests[0]["leave_type"] == "sick" and requests[0]["requester_id"] == "acct-bob"


def test_restart_from_zero_does_not_duplicate_records() -> None:
    """An abandoned run restarted at batch 0 should match an uninterrupted run."""
    records = _staged_records()
    engine, chunk_store = _engine(records)
    engine.run_batch(0)
    engine.run_batch(1)

    for index in range(3):
        engine.run_batch(index)
    restarted_requests = chunk_store.load(REQUESTS_KEY)
    clean_engine, clean_store = _engine(records)
    for index in range(3):
        clean_engine.run_batch(index)

    assert len(restarted_requests) == 12
    assert restarted_requests == clean_store.load(REQUESTS_KEY)
    assert chunk_store.load(SCHEDULES_KEY) == clean_store.load(SCHEDULES_KEY)


def test_run_batch_collects_row_failures_with_global_index() -> None:
    """A row that cannot be synthesized should not block its batch."""
    records = _staged_records()
    broken_fields = dict(records[6].fields)
    del broken_fields["leave_type"]
    records[6] = replace(records[6], fields=broken_fields)
    engine, chunk_store = _engine(records)

    summary = [engine.run_batch(index) for index in range(3)][-1].result

    assert summary is not None
    assert summary.imported_records == 11 and summary.failed_records == 1
    assert summary.errors[0].index == 6 and "leave_type" in summary.errors[0].error
    assert len(chunk_store.load(REQUESTS_KEY)) == 11


def test_run_batch_write_failure_keeps_earlier_batches() -> None:
    """A failed commit should report the batch and keep prior batches durable."""
    backend = _SwitchableBackend(max_item_size=100_000)
    engine, chunk_store = _engine(_staged_records(), backend=backend)
    engine.run_batch(0)
    backend.fail_writes = True

    with pytest.raises(BatchWriteFailure) as error_info:
        engine.run_batch(1)

    assert error_info.value.batch_index == 1 and error_info.value.committed_records == 5
    assert len(chunk_store.load(REQUESTS_KEY)) == 5
    assert ProgressTracker(chunk_store).read().current_batch == 1


def test_run_batch_rejects_index_other_than_cursor() -> None:
    """Skipping ahead of the persisted cursor should be refused."""
    engine, _ = _engine(_staged_records())
    engine.run_batch(0)

    with pytest.raises(ImportRunError):
        engine.run_batch(2)

    assert True


def test_run_batch_rejects_negative_index() -> None:
    """Negative batch indices are invalid."""
    engine, _ = _engine(_staged_records())

    with pytest.raises(ImportRunError):
        engine.run_batch(-1)

    assert True


def test_run_batch_requires_run_in_progress() -> None:
    """A non-zero index without a persisted cursor should be refused."""
    engine, _ = _engine(_staged_records())

    with pytest.raises(ImportRunError):
        engine.run_batch(1)

    assert True


def test_run_batch_requires_staged_rows() -> None:
    """Starting a run with nothing staged should fail with a hint."""
    engine = BatchImportEngine(ChunkStore(InMemoryBackend(max_item_size=1_000), 500))

    with pytest.raises(ImportRunError, match="stage rows"):
        engine.run_batch(0)

    assert True


def test_run_batch_detects_restaged_dataset() -> None:
    """Restaging a different row count mid-run should require a restart."""
    records = _staged_records()
    engine, chunk_store = _engine(records)
    engine.run_batch(0)
    ImportStager(chunk_store).stage(records[:4])

    with pytest.raises(ImportRunError, match="Restart at batch 0"):
        engine.run_batch(1)

    assert True


def test_run_batch_zero_rows_finishes_immediately() -> None:
    """An empty staged dataset should finish on the first call."""
    engine, chunk_store = _engine([])

    outcome = engine.run_batch(0)

    assert outcome.finished and outcome.result is not None
    assert outcome.progress is not None and outcome.progress.total_batches == 0
    assert outcome.result.total_records == 0 and chunk_store.load(REQUESTS_KEY) is None


def test_finish_clears_staging_and_progress() -> None:
    """The final batch should remove staged rows and the cursor."""
    engine, chunk_store = _engine(_staged_records(), batch_size=20)

    outcome = engine.run_batch(0)

    assert outcome.finished
    assert chunk_store.load(STAGING_KEY) is None and chunk_store.load(PROGRESS_KEY) is None


def test_run_batch_handles_chunked_collections() -> None:
    """Destination collections larger than one chunk should still accumulate."""
    chunk_store = ChunkStore(InMemoryBackend(max_item_size=3_000), 1_500)
    ImportStager(chunk_store).stage(_staged_records())
    engine = BatchImportEngine(chunk_store, batch_size=4)

    summary = [engine.run_batch(index) for index in range(3)][-1].result

    assert summary is not None and summary.imported_records == 12
    assert len(chunk_store.load(REQUESTS_KEY)) == 12


def test_synthesize_records_is_deterministic() -> None:
    """The same staged row and index should produce identical ids."""
    record = _staged_records()[0]

    first_request, first_schedule = synthesize_records(record, 0)
    second_request, _ = synthesize_records(record, 0)
    other_request, _ = synthesize_records(record, 1)

    assert first_request.id == second_request.id and first_request.id != other_request.id
    assert first_schedule.pto_request_id == first_request.id
    assert first_request.total_days == 1 and first_request.total_hours == 8.0


def test_engine_rejects_non_positive_batch_size() -> None:
    """Batch size must be positive."""
    with pytest.raises(ImportRunError):
        BatchImportEngine(ChunkStore(InMemoryBackend(max_item_size=100), 50), batch_size=0)

    assert True
