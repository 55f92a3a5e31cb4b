"""Amazon S3 storage backend.

Wraps a boto3 S3 client. Works against AWS and S3-compatible stores such as
MinIO (set BUCKETSTORE_S3_ENDPOINT_URL and BUCKETSTORE_S3_FORCE_PATH_STYLE).

Buckets are assumed to exist: no head_bucket request is made, which avoids
requiring the extra permission at the cost of failing on the first real call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, BinaryIO, Final

from botocore.exceptions import ClientError

from bucketstore.adapters.base import (
    DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    StorageAdapter,
    UploadSink,
)
from bucketstore.errors import ObjectNotFoundError
from bucketstore.models import DownloadResult, ObjectRef, Page

if TYPE_CHECKING:
    from bucketstore.config import BucketStoreConfig

logger = logging.getLogger(__name__)

# S3 rejects multipart parts under 5 MiB, except for the last one.
MIN_MULTIPART_PART_SIZE_BYTES: Final[int] = 5 * 1024 * 1024

_NOT_FOUND_CODES: Final[frozenset[str]] = frozenset({"404", "NoSuchKey", "NotFound"})


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in _NOT_FOUND_CODES


def build_s3_client(config: BucketStoreConfig) -> Any:
    """Create a boto3 S3 client from configuration."""
    import boto3
    from botocore.config import Config

    client_config = Config(
        connect_timeout=config.s3_open_timeout_seconds,
        read_timeout=config.s3_read_timeout_seconds,
        s3={"addressing_style": "path" if config.s3_force_path_style else "auto"},
    )

    client_kwargs: dict[str, Any] = {"config": client_config}
    if config.s3_region:
        client_kwargs["region_name"] = config.s3_region
    if config.s3_endpoint_url:
        client_kwargs["endpoint_url"] = config.s3_endpoint_url

    return boto3.client("s3", **client_kwargs)


class _S3MultipartSink(UploadSink):
    """Streams chunks as multipart upload parts.

    Chunks are buffered until a full part is available. Objects that never
    fill one part are sent with a single put_object at finalize.
    """

    def __init__(
        self,
        client: Any,
        bucket: str,
        key: str,
        part_size: int = MIN_MULTIPART_PART_SIZE_BYTES,
    ) -> None:
        super().__init__(bucket, key)
        self._client = client
        self._part_size = max(part_size, MIN_MULTIPART_PART_SIZE_BYTES)
        self._buffer = bytearray()
        self._upload_id: str | None = None
        self._parts: list[dict[str, Any]] = []

    def _write_chunk(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)
        while len(self._buffer) >= self._part_size:
            part = bytes(self._buffer[: self._part_size])
            del self._buffer[: self._part_size]
            self._upload_part(part)

    def _upload_part(self, data: bytes) -> None:
        if self._upload_id is None:
            response = self._client.create_multipart_upload(Bucket=self.bucket, Key=self.key)
            self._upload_id = response["UploadId"]

        part_number = len(self._parts) + 1
        try:
            response = self._client.upload_part(
                Bucket=self.bucket,
                Key=self.key,
                UploadId=self._upload_id,
                PartNumber=part_number,
                Body=data,
            )
        except Exception:
            self._discard()
            raise
        self._parts.append({"PartNumber": part_number, "ETag": response["ETag"]})

    def _finalize(self) -> None:
        if self._upload_id is None:
            self._client.put_object(Bucket=self.bucket, Key=self.key, Body=bytes(self._buffer))
            self._buffer = bytearray()
            return

        if self._buffer:
            self._upload_part(bytes(self._buffer))
            self._buffer = bytearray()

        try:
            self._client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=self.key,
                UploadId=self._upload_id,
                MultipartUpload={"Parts": self._parts},
            )
        except Exception:
            self._discard()
            raise

    def _discard(self) -> None:
        self._buffer = bytearray()
        if self._upload_id is None:
            return
        upload_id, self._upload_id = self._upload_id, None
        self._client.abort_multipart_upload(Bucket=self.bucket, Key=self.key, UploadId=upload_id)


class S3Adapter(StorageAdapter):
    """S3 storage adapter.

    Deleting an absent key succeeds silently, as delete_object does.
    """

    supports_move = True

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def build(cls, config: BucketStoreConfig | None = None) -> S3Adapter:
        """Build an adapter with a boto3 client configured from the environment."""
        if config is None:
            from bucketstore.config import load_config

            config = load_config()
        return cls(build_s3_client(config))

    @property
    def backend_name(self) -> str:
        return "s3"

    @property
    def client(self) -> Any:
        return self._client

    def upload(self, bucket: str, key: str, content: bytes | BinaryIO) -> ObjectRef:
        self._client.put_object(Bucket=bucket, Key=key, Body=content)
        return ObjectRef(bucket=bucket, key=key)

    def download(self, bucket: str, key: str) -> DownloadResult:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=bucket, key=key) from e
            raise

        body = response["Body"]
        try:
            content = body.read()
        finally:
            body.close()
        return DownloadResult(bucket=bucket, key=key, content=content)

    def list(self, bucket: str, prefix: str, page_size: int) -> Iterator[Page]:
        request: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "MaxKeys": page_size}

        while True:
            response = self._client.list_objects_v2(**request)
            keys = tuple(obj["Key"] for obj in response.get("Contents", []))
            if keys:
                yield Page(bucket=bucket, keys=keys)

            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                break
            request["ContinuationToken"] = token

    def delete(self, bucket: str, key: str) -> bool:
        self._client.delete_object(Bucket=bucket, Key=key)
        return True

    def _object_size(self, bucket: str, key: str) -> int:
        try:
            response = self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=bucket, key=key) from e
            raise
        return int(response["ContentLength"])

    def stream_download(
        self,
        bucket: str,
        key: str,
        chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        size = self._object_size(bucket, key)
        return self._iter_ranges(ObjectRef(bucket=bucket, key=key), size, chunk_size)

    def _iter_ranges(
        self, ref: ObjectRef, size: int, chunk_size: int
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        for start in range(0, size, chunk_size):
            end = min(start + chunk_size, size) - 1
            response = self._client.get_object(
                Bucket=ref.bucket,
                Key=ref.key,
                Range=f"bytes={start}-{end}",
            )
            body = response["Body"]
            try:
                chunk = body.read()
            finally:
                body.close()
            yield ref, chunk

    def stream_upload(self, bucket: str, key: str) -> UploadSink:
        return _S3MultipartSink(self._client, bucket, key)

    def move(self, bucket: str, key: str, new_bucket: str, new_key: str) -> ObjectRef:
        try:
            self._client.copy_object(
                Bucket=new_bucket,
                Key=new_key,
                CopySource={"Bucket": bucket, "Key": key},
            )
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=bucket, key=key) from e
            raise

        if (bucket, key) != (new_bucket, new_key):
            self._client.delete_object(Bucket=bucket, Key=key)
        return ObjectRef(bucket=new_bucket, key=new_key)
