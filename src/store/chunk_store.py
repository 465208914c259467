"""Chunked entry persistence over a size-limited key-value backend.

This module splits serialized values that exceed the chunk size into
contiguous text slices and reassembles them on load. Key layout:

    key                 direct value (single-piece entries)
    key + "_meta"       ChunkMetadata for chunked entries
    key + "_chunk_" + i one text slice, i in [0, total_chunks)

Writes are not transactional. A failure midway through a chunked write
leaves a partially written entry that load reports as MissingChunkError
or CorruptPayloadError.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from core.constants import CHUNK_KEY_INFIX, CHUNK_META_SUFFIX
from core.errors import CorruptPayloadError, MissingChunkError, StoreError
from core.logging_config import get_logger
from core.types import ChunkMetadata, StoreResult
from store.kv_backend import KeyValueBackend, encode_value

_LOGGER = get_logger(__name__)


def metadata_key(key: str) -> str:
    """Return the metadata key for a base key."""
    return f"{key}{CHUNK_META_SUFFIX}"


def chunk_key(key: str, index: int) -> str:
    """Return the key of one chunk of a base key."""
    return f"{key}{CHUNK_KEY_INFIX}{index}"


def split_text(text: str, max_chunk_size: int) -> list[str]:
    """Split text into contiguous slices of at most max_chunk_size characters."""
    return [text[start : start + max_chunk_size] for start in range(0, len(text), max_chunk_size)]


class ChunkStore:
    """Split, reassemble, and delete entries larger than one backend item."""

    def __init__(self, backend: KeyValueBackend, max_chunk_size: int) -> None:
        self._backend = backend
        self._max_chunk_size = max_chunk_size

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    def store(self, key: str, value: Any, max_chunk_size: int | None = None) -> StoreResult:
        """Persist a value, splitting it into chunks when needed.

        Args:
            key: Base key of the entry.
            value: JSON-serializable value.
            max_chunk_size: Optional override of the configured chunk size.

        Returns:
            Store result with the number of stored pieces.

        Raises:
            StoreError: If the chunk size is invalid or a backend write fails.
            OversizeWriteError: If one stored unit exceeds the backend ceiling.
        """
        chunk_size = self._max_chunk_size if max_chunk_size is None else max_chunk_size
        if chunk_size <= 0:
            raise StoreError(f"Invalid chunk size {chunk_size} for '{key}': expected > 0.")
        text = encode_value(value)
        previous_metadata = self._read_previous_metadata(key)
        if len(text) <= chunk_size:
            self._backend.set(key, value)
            if previous_metadata is not None:
                self._delete_chunk_layout(key, previous_metadata)
            _LOGGER.debug("chunk_store_written", key=key, chunks=1, total_size=len(text))
            return StoreResult(key=key, chunks=1, total_size=len(text))
        slices = split_text(text, chunk_size)
        metadata = ChunkMetadata(
            total_chunks=len(slices),
            total_size=len(text),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._backend.set(metadata_key(key), _metadata_to_payload(metadata))
        for index, text_slice in enumerate(slices):
            self._backend.set(chunk_key(key, index), text_slice)
        if previous_metadata is not None and previous_metadata.total_chunks > len(slices):
            self._delete_surplus_chunks(key, previous_metadata, len(slices))
        self._delete_quietly(key)
        _LOGGER.info(
            "chunk_store_written",
            key=key,
            chunks=len(slices),
            total_size=len(text),
            chunk_size=chunk_size,
        )
        return StoreResult(key=key, chunks=len(slices), total_size=len(text))

    def load(self, key: str) -> Any | None:
        """Load and reassemble an entry.

        Args:
            key: Base key of the entry.

        Returns:
            Stored value, or None when the entry does not exist.

        Raises:
            MissingChunkError: If a chunk is absent during reassembly.
            CorruptPayloadError: If reassembled text cannot be deserialized.
        """
        metadata = self._read_metadata(key)
        if metadata is None or not metadata.chunked:
            return self._backend.get(key)
        slices: list[str] = []
        for index in range(metadata.total_chunks):
            text_slice = self._backend.get(chunk_key(key, index))
            if text_slice is None:
                raise MissingChunkError(
                    f"Chunk {index} of {metadata.total_chunks} is missing for '{key}'. "
                    "The entry was partially written; store it again."
                )
            if not isinstance(text_slice, str):
                raise CorruptPayloadError(
                    f"Chunk {index} of '{key}' holds {type(text_slice).__name__}, expected text."
                )
            slices.append(text_slice)
        text = "".join(slices)
        if len(text) != metadata.total_size:
            raise CorruptPayloadError(
                f"Reassembled '{key}' has {len(text)} characters, "
                f"metadata recorded {metadata.total_size}."
            )
        try:
            return json.loads(text)
        except json.JSONDecodeError as error:
            raise CorruptPayloadError(
                f"Failed to deserialize reassembled '{key}': {error.msg}."
            ) from error

    def remove(self, key: str) -> int:
        """Delete an entry and all of its chunks.

        Individual deletion failures are logged and skipped.

        Args:
            key: Base key of the entry.

        Returns:
            Number of keys actually removed.
        """
        removed_count = 0
        try:
            metadata = self._read_metadata(key)
        except StoreError as error:
            _LOGGER.warning("chunk_store_metadata_unreadable", key=key, error=str(error))
            metadata = None
        if metadata is not None:
            removed_count += self._delete_chunk_layout(key, metadata)
        else:
            removed_count += self._delete_quietly(metadata_key(key))
        removed_count += self._delete_quietly(key)
        _LOGGER.info("chunk_store_removed", key=key, removed_keys=removed_count)
        return removed_count

    def _read_previous_metadata(self, key: str) -> ChunkMetadata | None:
        """Read metadata before an overwrite; unreadable metadata yields an empty layout."""
        try:
            return self._read_metadata(key)
        except CorruptPayloadError as error:
            _LOGGER.warning("chunk_store_metadata_unreadable", key=key, error=str(error))
            return ChunkMetadata(total_chunks=0, total_size=0, timestamp="", chunked=False)

    def _read_metadata(self, key: str) -> ChunkMetadata | None:
        payload = self._backend.get(metadata_key(key))
        if payload is None:
            return None
        return _metadata_from_payload(key, payload)

    def _delete_chunk_layout(self, key: str, metadata: ChunkMetadata) -> int:
        removed_count = self._delete_quietly(metadata_key(key))
        return removed_count + self._delete_chunks(key, 0, metadata.total_chunks)

    def _delete_surplus_chunks(
        self,
        key: str,
        previous_metadata: ChunkMetadata,
        total_chunks: int,
    ) -> int:
        return self._delete_chunks(key, total_chunks, previous_metadata.total_chunks)

    def _delete_chunks(self, key: str, first_index: int, end_index: int) -> int:
        return sum(
            self._delete_quietly(chunk_key(key, index)) for index in range(first_index, end_index)
        )

    def _delete_quietly(self, key: str) -> int:
        """Delete one backend key, returning 1 when removed and 0 otherwise."""
        try:
            self._backend.delete(key)
        except StoreError as error:
            _LOGGER.debug("chunk_store_delete_skipped", key=key, error=str(error))
            return 0
        return 1


def _metadata_from_payload(key: str, payload: Any) -> ChunkMetadata:
    """Deserialize metadata payload.

    Raises:
        CorruptPayloadError: If payload does not describe chunk metadata.
    """
    if not isinstance(payload, dict):
        raise CorruptPayloadError(f"Metadata for '{key}' is not an object.")
    try:
        total_chunks = int(payload["totalChunks"])
        total_size = int(payload["totalSize"])
    except (KeyError, TypeError, ValueError) as error:
        raise CorruptPayloadError(f"Metadata for '{key}' is malformed: {error}.") from error
    if total_chunks < 0 or total_size < 0:
        raise CorruptPayloadError(f"Metadata for '{key}' has negative sizes.")
    return ChunkMetadata(
        total_chunks=total_chunks,
        total_size=total_size,
        timestamp=str(payload.get("timestamp", "")),
        chunked=bool(payload.get("chunked", False)),
    )


def _metadata_to_payload(metadata: ChunkMetadata) -> dict[str, object]:
    """Serialize metadata into its stored key layout."""
    return {
        "totalChunks": metadata.total_chunks,
        "totalSize": metadata.total_size,
        "timestamp": metadata.timestamp,
        "chunked": metadata.chunked,
    }
