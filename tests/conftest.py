"""Pytest configuration and fixtures for bucketstore tests.

This module provides the in-memory store reset shared by every test, plus
fake S3 and GCS clients that mimic the parts of boto3 and
google-cloud-storage the adapters use, raising the real SDK exceptions.
"""

from __future__ import annotations

import io
from collections import defaultdict
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError
from google.api_core.exceptions import NotFound

from bucketstore.adapters import DiskAdapter, GcsAdapter, InMemoryStore, S3Adapter
from bucketstore.adapters.inmemory import reset_default_store
from bucketstore.config import ENV_DISK_BASE_DIR


@pytest.fixture(autouse=True)
def reset_inmemory_store() -> Iterator[None]:
    """Give every test an empty process-wide in-memory store."""
    reset_default_store()
    yield
    reset_default_store()


@pytest.fixture
def disk_base_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point DISK_ADAPTER_BASE_DIR at a per-test temp directory."""
    base_dir = tmp_path / "disk-store"
    base_dir.mkdir()
    monkeypatch.setenv(ENV_DISK_BASE_DIR, str(base_dir))
    return base_dir


@pytest.fixture
def disk_adapter(disk_base_dir: Path) -> DiskAdapter:
    return DiskAdapter(disk_base_dir)


@pytest.fixture
def inmemory_store() -> InMemoryStore:
    """A private store, isolated from the process-wide default."""
    return InMemoryStore()


# ---------------------------------------------------------------------------
# Fake S3 client
# ---------------------------------------------------------------------------


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    """In-process stand-in for a boto3 S3 client."""

    def __init__(self) -> None:
        self.objects: defaultdict[str, dict[str, bytes]] = defaultdict(dict)
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.multipart_uploads: dict[str, dict[int, bytes]] = {}
        self.aborted_uploads: list[str] = []
        self._upload_counter = 0

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    def put_object(self, *, Bucket: str, Key: str, Body: Any) -> dict[str, Any]:
        self._record("put_object", Bucket=Bucket, Key=Key)
        data = Body if isinstance(Body, bytes) else Body.read()
        self.objects[Bucket][Key] = bytes(data)
        return {"ETag": '"etag"'}

    def get_object(self, *, Bucket: str, Key: str, Range: str | None = None) -> dict[str, Any]:
        self._record("get_object", Bucket=Bucket, Key=Key, Range=Range)
        if Key not in self.objects[Bucket]:
            raise _client_error("NoSuchKey", "GetObject")
        data = self.objects[Bucket][Key]
        if Range is not None:
            start, end = Range.removeprefix("bytes=").split("-")
            data = data[int(start) : int(end) + 1]
        return {"Body": io.BytesIO(data), "ContentLength": len(data)}

    def head_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self._record("head_object", Bucket=Bucket, Key=Key)
        if Key not in self.objects[Bucket]:
            raise _client_error("404", "HeadObject")
        return {"ContentLength": len(self.objects[Bucket][Key])}

    def list_objects_v2(
        self,
        *,
        Bucket: str,
        Prefix: str,
        MaxKeys: int,
        ContinuationToken: str | None = None,
    ) -> dict[str, Any]:
        self._record(
            "list_objects_v2",
            Bucket=Bucket,
            Prefix=Prefix,
            MaxKeys=MaxKeys,
            ContinuationToken=ContinuationToken,
        )
        keys = sorted(k for k in self.objects[Bucket] if k.startswith(Prefix))
        offset = int(ContinuationToken) if ContinuationToken else 0
        page = keys[offset : offset + MaxKeys]
        truncated = offset + MaxKeys < len(keys)

        response: dict[str, Any] = {"IsTruncated": truncated, "KeyCount": len(page)}
        if page:
            response["Contents"] = [{"Key": k, "Size": len(self.objects[Bucket][k])} for k in page]
        if truncated:
            response["NextContinuationToken"] = str(offset + MaxKeys)
        return response

    def delete_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self._record("delete_object", Bucket=Bucket, Key=Key)
        self.objects[Bucket].pop(Key, None)
        return {}

    def copy_object(self, *, Bucket: str, Key: str, CopySource: dict[str, str]) -> dict[str, Any]:
        self._record("copy_object", Bucket=Bucket, Key=Key, CopySource=CopySource)
        source = self.objects[CopySource["Bucket"]]
        if CopySource["Key"] not in source:
            raise _client_error("NoSuchKey", "CopyObject")
        self.objects[Bucket][Key] = source[CopySource["Key"]]
        return {}

    def create_multipart_upload(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self._record("create_multipart_upload", Bucket=Bucket, Key=Key)
        self._upload_counter += 1
        upload_id = f"upload-{self._upload_counter}"
        self.multipart_uploads[upload_id] = {}
        return {"UploadId": upload_id}

    def upload_part(
        self, *, Bucket: str, Key: str, UploadId: str, PartNumber: int, Body: bytes
    ) -> dict[str, Any]:
        self._record("upload_part", Bucket=Bucket, Key=Key, PartNumber=PartNumber, Size=len(Body))
        self.multipart_uploads[UploadId][PartNumber] = Body
        return {"ETag": f'"etag-{PartNumber}"'}

    def complete_multipart_upload(
        self, *, Bucket: str, Key: str, UploadId: str, MultipartUpload: dict[str, Any]
    ) -> dict[str, Any]:
        self._record("complete_multipart_upload", Bucket=Bucket, Key=Key, UploadId=UploadId)
        parts = self.multipart_uploads.pop(UploadId)
        numbers = [p["PartNumber"] for p in MultipartUpload["Parts"]]
        self.objects[Bucket][Key] = b"".join(parts[n] for n in numbers)
        return {}

    def abort_multipart_upload(self, *, Bucket: str, Key: str, UploadId: str) -> dict[str, Any]:
        self._record("abort_multipart_upload", Bucket=Bucket, Key=Key, UploadId=UploadId)
        self.multipart_uploads.pop(UploadId, None)
        self.aborted_uploads.append(UploadId)
        return {}


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def s3_adapter(s3_client: FakeS3Client) -> S3Adapter:
    return S3Adapter(s3_client)


# ---------------------------------------------------------------------------
# Fake GCS client
# ---------------------------------------------------------------------------


class FakeGcsWriter:
    """File-like writer returned by FakeGcsBlob.open("wb")."""

    def __init__(self, blob: FakeGcsBlob) -> None:
        self._blob = blob
        self._buffer = bytearray()
        self.closed = False

    def write(self, data: bytes) -> int:
        self._buffer.extend(data)
        return len(data)

    def close(self) -> None:
        self.closed = True
        self._blob._objects[self._blob.name] = bytes(self._buffer)


class FakeGcsBlob:
    def __init__(self, bucket: FakeGcsBucket, name: str) -> None:
        self.bucket = bucket
        self.name = name
        self._objects = bucket.objects

    @property
    def size(self) -> int | None:
        data = self._objects.get(self.name)
        return None if data is None else len(data)

    def _require(self) -> bytes:
        if self.name not in self._objects:
            raise NotFound(f"No such object: {self.bucket.name}/{self.name}")
        return self._objects[self.name]

    def upload_from_string(self, data: bytes, timeout: Any = None) -> None:
        self.bucket.client.requests.append(("upload_from_string", self.name, timeout))
        self._objects[self.name] = bytes(data)

    def upload_from_file(self, file_obj: Any, timeout: Any = None) -> None:
        self.bucket.client.requests.append(("upload_from_file", self.name, timeout))
        self._objects[self.name] = file_obj.read()

    def download_as_bytes(
        self, start: int | None = None, end: int | None = None, timeout: Any = None
    ) -> bytes:
        self.bucket.client.requests.append(("download_as_bytes", self.name, (start, end)))
        data = self._require()
        if start is None:
            return data
        return data[start : (end + 1) if end is not None else None]

    def delete(self, timeout: Any = None) -> None:
        self._require()
        del self._objects[self.name]

    def open(self, mode: str, chunk_size: int | None = None, timeout: Any = None) -> FakeGcsWriter:
        assert mode == "wb"
        writer = FakeGcsWriter(self)
        self.bucket.client.writers.append(writer)
        return writer


class FakeGcsBucket:
    def __init__(self, client: FakeGcsClient, name: str) -> None:
        self.client = client
        self.name = name
        self.objects = client.objects[name]

    def blob(self, name: str) -> FakeGcsBlob:
        return FakeGcsBlob(self, name)

    def get_blob(self, name: str, timeout: Any = None) -> FakeGcsBlob | None:
        if name not in self.objects:
            return None
        return FakeGcsBlob(self, name)

    def copy_blob(
        self,
        blob: FakeGcsBlob,
        destination_bucket: FakeGcsBucket,
        new_name: str,
        timeout: Any = None,
    ) -> FakeGcsBlob:
        destination_bucket.objects[new_name] = blob._require()
        return FakeGcsBlob(destination_bucket, new_name)


class FakeBlobIterator:
    """Mimics the single-request page iterator returned by list_blobs."""

    def __init__(self, blobs: list[FakeGcsBlob], next_page_token: str | None) -> None:
        self._blobs = blobs
        self.next_page_token = next_page_token

    @property
    def pages(self) -> Iterator[list[FakeGcsBlob]]:
        yield self._blobs


class FakeGcsClient:
    """In-process stand-in for google.cloud.storage.Client."""

    def __init__(self) -> None:
        self.objects: defaultdict[str, dict[str, bytes]] = defaultdict(dict)
        self.list_requests: list[dict[str, Any]] = []
        self.requests: list[tuple[str, str, Any]] = []
        self.writers: list[FakeGcsWriter] = []

    def bucket(self, name: str) -> FakeGcsBucket:
        return FakeGcsBucket(self, name)

    def list_blobs(
        self,
        bucket: str,
        prefix: str = "",
        page_size: int | None = None,
        page_token: str | None = None,
        timeout: Any = None,
    ) -> FakeBlobIterator:
        self.list_requests.append(
            {"bucket": bucket, "prefix": prefix, "page_size": page_size, "page_token": page_token}
        )
        names = sorted(n for n in self.objects[bucket] if n.startswith(prefix))
        offset = int(page_token) if page_token else 0
        size = page_size or len(names) or 1
        page = names[offset : offset + size]
        token = str(offset + size) if offset + size < len(names) else None
        fake_bucket = self.bucket(bucket)
        return FakeBlobIterator([FakeGcsBlob(fake_bucket, n) for n in page], token)


@pytest.fixture
def gcs_client() -> FakeGcsClient:
    return FakeGcsClient()


@pytest.fixture
def gcs_adapter(gcs_client: FakeGcsClient) -> GcsAdapter:
    return GcsAdapter(gcs_client, timeout_seconds=30)
