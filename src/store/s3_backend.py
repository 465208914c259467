"""S3 object-store backend.

This module encapsulates boto3 client creation and maps the key-value
contract onto one S3 object per key under a configured prefix.
"""

from __future__ import annotations

import json
from typing import Any

from core.config import ImportConfig
from core.errors import (
    BackendKeyError,
    CorruptPayloadError,
    ImportConfigError,
    ImportDependencyError,
    StoreError,
)
from store.kv_backend import check_item_size, encode_value

_MISSING_KEY_CODES = ("NoSuchKey", "404", "NotFound")


def create_s3_client(config: ImportConfig) -> Any:
    """Create boto3 S3 client for the backend.

    Args:
        config: Runtime config with optional session settings.

    Returns:
        Boto3 S3 client.

    Raises:
        ImportDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise ImportDependencyError(
            "The S3 backend requires boto3, but it is not installed. "
            "Install boto3 or set PTO_IMPORT_BACKEND=file."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")


class S3Backend:
    """Key-value backend storing canonical JSON objects in S3."""

    def __init__(self, s3_client: Any, bucket: str, prefix: str, max_item_size: int) -> None:
        self.max_item_size = max_item_size
        self._client = s3_client
        self._bucket = bucket
        self._prefix = prefix.strip("/")

    @classmethod
    def from_config(cls, config: ImportConfig, s3_client: Any) -> "S3Backend":
        """Build backend from runtime config.

        Raises:
            ImportConfigError: If no bucket is configured.
        """
        if not config.s3_bucket:
            raise ImportConfigError(
                "PTO_IMPORT_BACKEND=s3 requires PTO_IMPORT_S3_BUCKET to be set."
            )
        return cls(s3_client, config.s3_bucket, config.s3_prefix, config.max_item_size)

    def get(self, key: str) -> Any | None:
        object_key = self._object_key(key)
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=object_key)
        except Exception as error:
            if _is_missing_key(error):
                return None
            raise StoreError(
                f"Failed to read s3://{self._bucket}/{object_key}: {error}. "
                "Check AWS credentials and retry."
            ) from error
        body = response["Body"].read().decode("utf-8")
        try:
            return json.loads(body)
        except json.JSONDecodeError as error:
            raise CorruptPayloadError(
                f"Failed to parse s3://{self._bucket}/{object_key}: {error.msg}."
            ) from error

    def set(self, key: str, value: Any) -> None:
        encoded_value = encode_value(value)
        check_item_size(key, value, encoded_value, self.max_item_size)
        object_key = self._object_key(key)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=object_key,
                Body=encoded_value.encode("utf-8"),
                ContentType="application/json",
            )
        except Exception as error:
            raise StoreError(
                f"Failed to write s3://{self._bucket}/{object_key}: {error}. "
                "Check AWS credentials and retry."
            ) from error

    def delete(self, key: str) -> None:
        object_key = self._object_key(key)
        try:
            self._client.head_object(Bucket=self._bucket, Key=object_key)
        except Exception as error:
            if _is_missing_key(error):
                raise BackendKeyError(f"Cannot delete '{key}': key not found.") from error
            raise StoreError(
                f"Failed to inspect s3://{self._bucket}/{object_key}: {error}."
            ) from error
        try:
            self._client.delete_object(Bucket=self._bucket, Key=object_key)
        except Exception as error:
            raise StoreError(
                f"Failed to delete s3://{self._bucket}/{object_key}: {error}."
            ) from error

    def _object_key(self, key: str) -> str:
        if not self._prefix:
            return key
        return f"{self._prefix}/{key}"


def _is_missing_key(error: Exception) -> bool:
    """Return whether a boto3 client error reports a missing object."""
    response = getattr(error, "response", None)
    if not isinstance(response, dict):
        return False
    error_code = str(response.get("Error", {}).get("Code", ""))
    return error_code in _MISSING_KEY_CODES
