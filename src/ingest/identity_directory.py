"""Identity directory lookups by email.

This module defines the directory contract used during import enrichment
and a static implementation backed by a mapping or a YAML file. Matching
is case-insensitive and exact; there is no fuzzy fallback.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping, Protocol

import yaml

from core.errors import DirectoryError
from core.logging_config import get_logger
from core.types import DirectoryIdentity

_LOGGER = get_logger(__name__)


class IdentityDirectory(Protocol):
    """Resolve a human identity by email."""

    def lookup_by_email(self, email: str) -> DirectoryIdentity | None:
        """Return the identity for email, or None when not found."""


class StaticDirectory:
    """In-memory directory keyed by lowercased email."""

    def __init__(self, identities: Iterable[DirectoryIdentity]) -> None:
        self._by_email: dict[str, DirectoryIdentity] = {}
        for identity in identities:
            self._by_email[identity.email.strip().lower()] = identity

    def lookup_by_email(self, email: str) -> DirectoryIdentity | None:
        identity = self._by_email.get(email.strip().lower())
        if identity is None:
            _LOGGER.info("directory_lookup_missed", email=email)
        return identity

    def __len__(self) -> int:
        return len(self._by_email)


def load_directory_file(directory_path: Path) -> StaticDirectory:
    """Load a YAML identity directory.

    The file holds a top-level ``identities`` list of mappings with
    ``identity``, ``display_name`` and ``email`` keys.

    Args:
        directory_path: YAML file path.

    Returns:
        Static directory with all listed identities.

    Raises:
        DirectoryError: If the file is missing or malformed.
    """
    if not directory_path.exists():
        raise DirectoryError(f"Identity directory file not found: {directory_path}")
    try:
        payload = yaml.safe_load(directory_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as error:
        raise DirectoryError(
            f"Failed to parse identity directory at {directory_path}: {error}"
        ) from error
    if not isinstance(payload, dict) or not isinstance(payload.get("identities"), list):
        raise DirectoryError(
            f"Identity directory at {directory_path} must define an 'identities' list."
        )
    identities = [
        _identity_from_mapping(directory_path, position, entry)
        for position, entry in enumerate(payload["identities"], 1)
    ]
    return StaticDirectory(identities)


def _identity_from_mapping(
    directory_path: Path,
    position: int,
    entry: object,
) -> DirectoryIdentity:
    if not isinstance(entry, Mapping):
        raise DirectoryError(f"Identity #{position} in {directory_path} is not a mapping.")
    values: dict[str, str] = {}
    for field_name in ("identity", "display_name", "email"):
        value = entry.get(field_name)
        if not isinstance(value, str) or not value.strip():
            raise DirectoryError(
                f"Identity #{position} in {directory_path} is missing '{field_name}'."
            )
        values[field_name] = value.strip()
    return DirectoryIdentity(
        identity=values["identity"],
        display_name=values["display_name"],
        email=values["email"],
    )
