"""Unit tests for core config parsing."""

from __future__ import annotations

import os

import pytest

from core.config import ImportConfig
from core.errors import ImportConfigError


def test_from_env_reads_data_root(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve data root from environment."""
    monkeypatch.setenv("PTO_IMPORT_DATA_ROOT", "./.tmp-pto-import")

    config = ImportConfig.from_env()

    assert config.data_root.name == ".tmp-pto-import"


def test_from_env_uses_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unset variables should fall back to documented defaults."""
    for name in (
        "PTO_IMPORT_BACKEND",
        "PTO_IMPORT_BATCH_SIZE",
        "PTO_IMPORT_MAX_CHUNK_SIZE",
        "PTO_IMPORT_MAX_ITEM_SIZE",
        "PTO_IMPORT_DIRECTORY_FILE",
    ):
        monkeypatch.delenv(name, raising=False)

    config = ImportConfig.from_env()

    assert (config.backend, config.batch_size, config.directory_file) == ("file", 5, None)


def test_from_env_raises_for_invalid_batch_size(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for non-numeric batch size."""
    monkeypatch.setenv("PTO_IMPORT_BATCH_SIZE", "not-a-number")

    with pytest.raises(ImportConfigError):
        ImportConfig.from_env()

    assert os.getenv("PTO_IMPORT_BATCH_SIZE") == "not-a-number"


def test_from_env_raises_for_non_positive_chunk_size(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for zero chunk size."""
    monkeypatch.setenv("PTO_IMPORT_MAX_CHUNK_SIZE", "0")

    with pytest.raises(ImportConfigError):
        ImportConfig.from_env()

    assert True


def test_from_env_raises_when_chunk_exceeds_item_ceiling(monkeypatch: pytest.MonkeyPatch) -> None:
    """Chunk size above the backend ceiling is a misconfiguration."""
    monkeypatch.setenv("PTO_IMPORT_MAX_ITEM_SIZE", "100")
    monkeypatch.setenv("PTO_IMPORT_MAX_CHUNK_SIZE", "200")

    with pytest.raises(ImportConfigError):
        ImportConfig.from_env()

    assert True


def test_from_env_raises_for_unknown_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unknown backend names should be rejected."""
    monkeypatch.setenv("PTO_IMPORT_BACKEND", "redis")

    with pytest.raises(ImportConfigError):
        ImportConfig.from_env()

    assert True
