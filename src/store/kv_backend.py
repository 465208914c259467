"""Size-limited key-value backends.

This module defines the backend protocol consumed by ChunkStore and
provides in-memory and filesystem implementations. Every backend
rejects writes above its per-item ceiling.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

from core.config import ImportConfig
from core.constants import KV_DIR_NAME, KV_FILE_SUFFIX
from core.errors import BackendKeyError, CorruptPayloadError, OversizeWriteError, StoreError


class KeyValueBackend(Protocol):
    """Minimal key-value contract with a per-item size ceiling."""

    max_item_size: int

    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when the key is absent."""

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key."""

    def delete(self, key: str) -> None:
        """Delete key, raising BackendKeyError when absent."""


def encode_value(value: Any) -> str:
    """Serialize a value into canonical JSON text.

    Args:
        value: JSON-serializable value.

    Returns:
        Canonical text with sorted keys and compact separators.

    Raises:
        StoreError: If the value is not JSON-serializable.
    """
    try:
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as error:
        raise StoreError(f"Value is not JSON-serializable: {error}") from error


def check_item_size(key: str, value: Any, encoded_value: str, max_item_size: int) -> None:
    """Reject one stored unit above the backend ceiling.

    Text values are measured by their own length, other values by their
    canonical JSON text.

    Raises:
        OversizeWriteError: If the encoded value exceeds the ceiling.
    """
    item_size = len(value) if isinstance(value, str) else len(encoded_value)
    if item_size > max_item_size:
        raise OversizeWriteError(
            f"Refusing to write {item_size} characters to '{key}': "
            f"backend ceiling is {max_item_size}. Lower the chunk size."
        )


class InMemoryBackend:
    """Process-local backend storing canonical JSON text per key."""

    def __init__(self, max_item_size: int) -> None:
        self.max_item_size = max_item_size
        self._items: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        encoded_value = self._items.get(key)
        if encoded_value is None:
            return None
        return json.loads(encoded_value)

    def set(self, key: str, value: Any) -> None:
        encoded_value = encode_value(value)
        check_item_size(key, value, encoded_value, self.max_item_size)
        self._items[key] = encoded_value

    def delete(self, key: str) -> None:
        if key not in self._items:
            raise BackendKeyError(f"Cannot delete '{key}': key not found.")
        del self._items[key]

    def keys(self) -> list[str]:
        """Return stored keys in sorted order."""
        return sorted(self._items)


class FileBackend:
    """Filesystem backend storing one JSON file per key."""

    def __init__(self, data_root: Path, max_item_size: int) -> None:
        self.max_item_size = max_item_size
        self._kv_dir = data_root / KV_DIR_NAME
        self._kv_dir.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Any | None:
        item_path = self._item_path(key)
        if not item_path.exists():
            return None
        try:
            encoded_value = item_path.read_text(encoding="utf-8")
        except OSError as error:
            raise StoreError(f"Failed to read '{key}' at {item_path}: {error}") from error
        try:
            return json.loads(encoded_value)
        except json.JSONDecodeError as error:
            raise CorruptPayloadError(
                f"Failed to parse stored item at {item_path}: {error.msg}. "
                "Remove the key and store it again."
            ) from error

    def set(self, key: str, value: Any) -> None:
        encoded_value = encode_value(value)
        check_item_size(key, value, encoded_value, self.max_item_size)
        item_path = self._item_path(key)
        try:
            item_path.write_text(encoded_value, encoding="utf-8")
        except OSError as error:
            raise StoreError(f"Failed to write '{key}' at {item_path}: {error}") from error

    def delete(self, key: str) -> None:
        item_path = self._item_path(key)
        if not item_path.exists():
            raise BackendKeyError(f"Cannot delete '{key}': key not found.")
        try:
            item_path.unlink()
        except OSError as error:
            raise StoreError(f"Failed to delete '{key}' at {item_path}: {error}") from error

    def _item_path(self, key: str) -> Path:
        return self._kv_dir / f"{quote(key, safe='')}{KV_FILE_SUFFIX}"


def build_backend(config: ImportConfig) -> KeyValueBackend:
    """Build the backend selected by runtime configuration.

    Args:
        config: Runtime configuration.

    Returns:
        Configured key-value backend.
    """
    if config.backend == "memory":
        return InMemoryBackend(config.max_item_size)
    if config.backend == "s3":
        from store.s3_backend import S3Backend, create_s3_client

        return S3Backend.from_config(config, create_s3_client(config))
    return FileBackend(config.data_root, config.max_item_size)
