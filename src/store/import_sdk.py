"""Python SDK for PTO import operations.

This module wires the configured backend, ChunkStore, identity directory,
stager, and batch engine behind one client used by the CLI and by callers
embedding the import workflow.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping, Sequence

from core.config import ImportConfig
from core.errors import ImportRunError
from core.types import (
    BatchOutcome,
    BatchProgress,
    ImportSummary,
    StagingRecord,
    StoreResult,
    ValidationOptions,
    ValidationReport,
)
from ingest.batch_engine import BatchImportEngine
from ingest.identity_directory import IdentityDirectory, load_directory_file
from ingest.import_stager import ImportStager
from store.chunk_store import ChunkStore
from store.kv_backend import KeyValueBackend, build_backend
from store.progress_tracker import ProgressTracker


class ImportClient:
    """Primary SDK entry point for validate, stage, and batch import workflows."""

    def __init__(
        self,
        config: ImportConfig | None = None,
        backend: KeyValueBackend | None = None,
        directory: IdentityDirectory | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
            backend: Optional backend overriding the configured one.
            directory: Optional identity directory overriding the configured file.
        """
        self._config = config or ImportConfig.from_env()
        self._backend = backend or build_backend(self._config)
        self._chunk_store = ChunkStore(self._backend, self._config.max_chunk_size)
        self._progress = ProgressTracker(self._chunk_store)
        if directory is None and self._config.directory_file is not None:
            directory = load_directory_file(self._config.directory_file)
        self._stager = ImportStager(self._chunk_store, directory)
        self._engine = BatchImportEngine(
            self._chunk_store,
            batch_size=self._config.batch_size,
            progress_tracker=self._progress,
        )

    @property
    def chunk_store(self) -> ChunkStore:
        return self._chunk_store

    def validate(
        self,
        rows: Sequence[Mapping[str, str]],
        resolve_identities: bool = False,
    ) -> ValidationReport:
        """Validate rows without persisting anything.

        Args:
            rows: Submitted rows mapping column name to string value.
            resolve_identities: Resolve and enrich requester and manager emails.

        Returns:
            Validation report.
        """
        options = ValidationOptions(resolve_identities=resolve_identities)
        return self._stager.validate(rows, options)

    def stage(self, records: Sequence[StagingRecord]) -> StoreResult:
        """Persist accepted rows for a later batch import run."""
        return self._stager.stage(records)

    def validate_and_stage(
        self,
        rows: Sequence[Mapping[str, str]],
    ) -> tuple[ValidationReport, StoreResult]:
        """Validate with identity resolution and stage the accepted rows.

        Returns:
            Validation report and staging write result.
        """
        report = self.validate(rows, resolve_identities=True)
        return report, self.stage(report.valid_records)

    def run_batch(self, batch_index: int) -> BatchOutcome:
        """Run one batch engine invocation."""
        return self._engine.run_batch(batch_index)

    def run_to_completion(self, start_index: int = 0) -> ImportSummary:
        """Drive successive batch invocations until the run finishes.

        Each invocation reloads its state from storage, exactly as separate
        processes would.

        Args:
            start_index: First batch index; 0 starts a fresh run.

        Returns:
            Final import summary.
        """
        batch_index = start_index
        while True:
            outcome = self._engine.run_batch(batch_index)
            if outcome.finished:
                if outcome.result is None:
                    raise ImportRunError("Finished batch run returned no summary.")
                return outcome.result
            if outcome.progress is None:
                raise ImportRunError("Unfinished batch run returned no progress.")
            batch_index = outcome.progress.current_batch

    def progress(self) -> BatchProgress | None:
        """Return the persisted cursor of the current run, if any."""
        return self._progress.read()

    def percent_complete(self) -> float:
        return self._progress.percent_complete()

    def clear_staging(self) -> int:
        return self._stager.clear_staging()

    def load(self, key: str) -> Any | None:
        """Load a stored entry through ChunkStore."""
        return self._chunk_store.load(key)

    def remove(self, key: str) -> int:
        """Remove a stored entry through ChunkStore."""
        return self._chunk_store.remove(key)

    def with_data_root(self, data_root: str) -> "ImportClient":
        """Clone the client with a different local data root.

        Args:
            data_root: New data root path.

        Returns:
            New SDK client instance.
        """
        resolved_root = Path(data_root).expanduser().resolve()
        return ImportClient(replace(self._config, data_root=resolved_root))
