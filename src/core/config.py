"""Runtime configuration model for pto-import.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_BACKEND,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DATA_ROOT,
    DEFAULT_MAX_CHUNK_SIZE,
    DEFAULT_MAX_ITEM_SIZE,
    DEFAULT_S3_PREFIX,
    SUPPORTED_BACKENDS,
)
from core.errors import ImportConfigError


@dataclass(frozen=True)
class ImportConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for the file backend.
        backend: Key-value backend name (file, memory, s3).
        max_item_size: Backend per-item ceiling in characters.
        max_chunk_size: Slice length used when splitting large entries.
        batch_size: Staged rows processed per engine invocation.
        s3_bucket: Bucket for the S3 backend.
        s3_prefix: Key prefix for the S3 backend.
        s3_region: Optional AWS region for the S3 backend.
        s3_profile: Optional AWS profile for boto3 session initialization.
        directory_file: Optional YAML identity directory path.
    """

    data_root: Path
    backend: str
    max_item_size: int
    max_chunk_size: int
    batch_size: int
    s3_bucket: str | None
    s3_prefix: str
    s3_region: str | None
    s3_profile: str | None
    directory_file: Path | None

    @classmethod
    def from_env(cls) -> "ImportConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            ImportConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("PTO_IMPORT_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        backend = _parse_backend(os.getenv("PTO_IMPORT_BACKEND", DEFAULT_BACKEND))
        max_item_size = _parse_positive_int(
            "PTO_IMPORT_MAX_ITEM_SIZE", os.getenv("PTO_IMPORT_MAX_ITEM_SIZE"), DEFAULT_MAX_ITEM_SIZE
        )
        max_chunk_size = _parse_positive_int(
            "PTO_IMPORT_MAX_CHUNK_SIZE",
            os.getenv("PTO_IMPORT_MAX_CHUNK_SIZE"),
            DEFAULT_MAX_CHUNK_SIZE,
        )
        batch_size = _parse_positive_int(
            "PTO_IMPORT_BATCH_SIZE", os.getenv("PTO_IMPORT_BATCH_SIZE"), DEFAULT_BATCH_SIZE
        )
        if max_chunk_size > max_item_size:
            raise ImportConfigError(
                f"PTO_IMPORT_MAX_CHUNK_SIZE ({max_chunk_size}) exceeds "
                f"PTO_IMPORT_MAX_ITEM_SIZE ({max_item_size}). "
                "Lower the chunk size so every chunk fits the backend ceiling."
            )
        directory_value = os.getenv("PTO_IMPORT_DIRECTORY_FILE")
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            backend=backend,
            max_item_size=max_item_size,
            max_chunk_size=max_chunk_size,
            batch_size=batch_size,
            s3_bucket=os.getenv("PTO_IMPORT_S3_BUCKET"),
            s3_prefix=os.getenv("PTO_IMPORT_S3_PREFIX", DEFAULT_S3_PREFIX),
            s3_region=os.getenv("PTO_IMPORT_S3_REGION"),
            s3_profile=os.getenv("PTO_IMPORT_S3_PROFILE"),
            directory_file=Path(directory_value).expanduser().resolve()
            if directory_value
            else None,
        )


def _parse_backend(raw_value: str) -> str:
    """Validate the backend name environment value."""
    backend = raw_value.strip().lower()
    if backend not in SUPPORTED_BACKENDS:
        raise ImportConfigError(
            f"Invalid PTO_IMPORT_BACKEND value '{raw_value}'. "
            f"Use one of: {', '.join(SUPPORTED_BACKENDS)}."
        )
    return backend


def _parse_positive_int(env_name: str, raw_value: str | None, default: int) -> int:
    """Parse a positive integer environment value.

    Args:
        env_name: Environment variable name for error messages.
        raw_value: Raw string from environment, or None when unset.
        default: Value used when the variable is unset.

    Returns:
        Parsed positive integer.

    Raises:
        ImportConfigError: If value is not a positive integer.
    """
    if raw_value is None:
        return default
    try:
        parsed_value = int(raw_value)
    except ValueError as error:
        raise ImportConfigError(
            f"Invalid {env_name} value: expected integer, got '{raw_value}'. "
            f"Set {env_name} to a positive number."
        ) from error
    if parsed_value <= 0:
        raise ImportConfigError(
            f"Invalid {env_name} value: expected positive integer, got {parsed_value}."
        )
    return parsed_value
