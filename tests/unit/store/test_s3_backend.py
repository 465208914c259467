"""Unit tests for the S3 key-value backend."""

from __future__ import annotations

import io
from dataclasses import replace

import pytest

from core.config import ImportConfig
from core.errors import BackendKeyError, ImportConfigError, OversizeWriteError, StoreError
from store.s3_backend import S3Backend


class _FakeClientError(Exception):
    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.response = {"Error": {"Code": code}}


class _FakeS3Client:
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_puts = False

    def get_object(self, Bucket: str, Key: str) -> dict[str, object]:
        if (Bucket, Key) not in self.objects:
            raise _FakeClientError("NoSuchKey")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}

    def put_object(self, Bucket: str, Key: str, Body: bytes, ContentType: str) -> None:
        if self.fail_puts:
            raise _FakeClientError("AccessDenied")
        self.objects[(Bucket, Key)] = Body

    def head_object(self, Bucket: str, Key: str) -> None:
        if (Bucket, Key) not in self.objects:
            raise _FakeClientError("404")

    def delete_object(self, Bucket: str, Key: str) -> None:
        self.objects.pop((Bucket, Key), None)


def _backend(client: _FakeS3Client) -> S3Backend:
    return S3Backend(client, bucket="bucket", prefix="pto/", max_item_size=50)


def test_s3_backend_roundtrip_under_prefix() -> None:
    """Values should be written under the configured prefix and read back."""
    client = _FakeS3Client()
    backend = _backend(client)

    backend.set("pto_requests", [{"id": "a"}])

    assert backend.get("pto_requests") == [{"id": "a"}]
    assert ("bucket", "pto/pto_requests") in client.objects


def test_s3_backend_missing_key_returns_none() -> None:
    """Missing objects should read as absent."""
    assert _backend(_FakeS3Client()).get("absent") is None


def test_s3_backend_delete_absent_key_raises() -> None:
    """Deleting a missing object should raise BackendKeyError."""
    with pytest.raises(BackendKeyError):
        _backend(_FakeS3Client()).delete("absent")

    assert True


def test_s3_backend_wraps_write_failures() -> None:
    """Client failures on write should surface as StoreError."""
    client = _FakeS3Client()
    client.fail_puts = True

    with pytest.raises(StoreError):
        _backend(client).set("key", "value")

    assert client.objects == {}


def test_s3_backend_rejects_oversize_write() -> None:
    """Values above the ceiling should never reach the client."""
    client = _FakeS3Client()

    with pytest.raises(OversizeWriteError):
        _backend(client).set("key", "x" * 60)

    assert client.objects == {}


def test_s3_backend_from_config_requires_bucket(tmp_path) -> None:
    """Building from config without a bucket should fail."""
    config = replace(ImportConfig.from_env(), data_root=tmp_path, s3_bucket=None)

    with pytest.raises(ImportConfigError):
        S3Backend.from_config(config, _FakeS3Client())

    assert config.s3_bucket is None
