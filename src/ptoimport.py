"""Public SDK surface for pto-import.

This module provides a stable import path for library users.
It re-exports the primary client and typed models.
"""

from __future__ import annotations

from core.config import ImportConfig
from core.types import (
    BatchOutcome,
    BatchProgress,
    DirectoryIdentity,
    ImportSummary,
    StagingRecord,
    ValidationOptions,
    ValidationReport,
)
from ingest.batch_engine import BatchImportEngine
from ingest.identity_directory import StaticDirectory, load_directory_file
from ingest.import_stager import ImportStager
from store.chunk_store import ChunkStore
from store.import_sdk import ImportClient
from store.kv_backend import FileBackend, InMemoryBackend
from store.progress_tracker import ProgressTracker

__all__ = [
    "BatchImportEngine",
    "BatchOutcome",
    "BatchProgress",
    "ChunkStore",
    "DirectoryIdentity",
    "FileBackend",
    "ImportClient",
    "ImportConfig",
    "ImportStager",
    "ImportSummary",
    "InMemoryBackend",
    "ProgressTracker",
    "StagingRecord",
    "StaticDirectory",
    "ValidationOptions",
    "ValidationReport",
    "load_directory_file",
]
