"""Unit tests for identity directory lookups."""

from __future__ import annotations

import pytest

from core.errors import DirectoryError
from core.types import DirectoryIdentity
from ingest.identity_directory import StaticDirectory, load_directory_file
from tests.fixture_paths import fixture_path


def test_lookup_is_case_insensitive_exact_match() -> None:
    """Lookups should ignore case but not accept partial matches."""
    directory = StaticDirectory(
        [DirectoryIdentity(identity="acct-1", display_name="Alice", email="Alice@Example.com")]
    )

    assert directory.lookup_by_email("alice@example.COM").identity == "acct-1"
    assert directory.lookup_by_email("alice@example") is None


def test_load_directory_file_reads_yaml_fixture() -> None:
    """YAML directory files should load every listed identity."""
    directory = load_directory_file(fixture_path("directory.yaml"))

    identity = directory.lookup_by_email("bob@example.com")

    assert len(directory) == 4 and identity.display_name == "Bob Brandt"


def test_load_directory_file_rejects_missing_fields(tmp_path) -> None:
    """Entries without an email should raise DirectoryError."""
    directory_path = tmp_path / "directory.yaml"
    directory_path.write_text(
        "identities:\n  - identity: acct-1\n    display_name: Alice\n", encoding="utf-8"
    )

    with pytest.raises(DirectoryError):
        load_directory_file(directory_path)

    assert directory_path.exists()


def test_load_directory_file_rejects_missing_file(tmp_path) -> None:
    """Missing directory files should raise DirectoryError."""
    with pytest.raises(DirectoryError):
        load_directory_file(tmp_path / "absent.yaml")

    assert True
