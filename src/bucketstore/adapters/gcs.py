"""Google Cloud Storage backend.

Wraps a google-cloud-storage client. Point the client library at an emulator
with STORAGE_EMULATOR_HOST.

Buckets are obtained with client.bucket(), which performs no lookup request.
Looking a bucket up needs permissions that service accounts often lack, and a
missing bucket surfaces on the first real call anyway.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, BinaryIO, Final

from google.api_core.exceptions import NotFound

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

# Resumable upload chunks must be a multiple of 256 KiB.
UPLOAD_CHUNK_SIZE_BYTES: Final[int] = 16 * 256 * 1024


def build_gcs_client() -> Any:
    """Create a google-cloud-storage client."""
    from google.cloud import storage

    return storage.Client()


class _GcsWriterSink(UploadSink):
    """Streams chunks through a resumable upload.

    The object is created when the writer is closed. An aborted sink never
    closes its writer, so the resumable session is left to expire and no
    object appears.
    """

    def __init__(self, blob: Any, bucket: str, key: str, request_kwargs: dict[str, Any]) -> None:
        super().__init__(bucket, key)
        self._blob = blob
        self._request_kwargs = request_kwargs
        self._writer: Any = None

    def _write_chunk(self, chunk: bytes) -> None:
        if self._writer is None:
            self._writer = self._blob.open(
                "wb", chunk_size=UPLOAD_CHUNK_SIZE_BYTES, **self._request_kwargs
            )
        self._writer.write(chunk)

    def _finalize(self) -> None:
        if self._writer is None:
            # Nothing was written; the writer would not create an object.
            self._blob.upload_from_string(b"", **self._request_kwargs)
            return
        self._writer.close()

    def _discard(self) -> None:
        self._writer = None


class GcsAdapter(StorageAdapter):
    """Google Cloud Storage adapter.

    Deleting an absent key raises ObjectNotFoundError, as blob.delete() does.
    """

    supports_move = True

    def __init__(self, client: Any, timeout_seconds: int | None = None) -> None:
        self._client = client
        self._timeout = timeout_seconds

    @classmethod
    def build(cls, config: BucketStoreConfig | None = None) -> GcsAdapter:
        """Build an adapter with a client configured from the environment."""
        if config is None:
            from bucketstore.config import load_config

            config = load_config()
        return cls(build_gcs_client(), timeout_seconds=config.gcs_timeout_seconds)

    @property
    def backend_name(self) -> str:
        return "gs"

    @property
    def client(self) -> Any:
        return self._client

    def _get_bucket(self, name: str) -> Any:
        return self._client.bucket(name)

    def _request_kwargs(self) -> dict[str, Any]:
        return {"timeout": self._timeout} if self._timeout is not None else {}

    def upload(self, bucket: str, key: str, content: bytes | BinaryIO) -> ObjectRef:
        blob = self._get_bucket(bucket).blob(key)
        if isinstance(content, (bytes, bytearray, memoryview)):
            blob.upload_from_string(bytes(content), **self._request_kwargs())
        else:
            blob.upload_from_file(content, **self._request_kwargs())
        return ObjectRef(bucket=bucket, key=key)

    def download(self, bucket: str, key: str) -> DownloadResult:
        blob = self._get_bucket(bucket).blob(key)
        try:
            content = blob.download_as_bytes(**self._request_kwargs())
        except NotFound as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e
        return DownloadResult(bucket=bucket, key=key, content=content)

    def list(self, bucket: str, prefix: str, page_size: int) -> Iterator[Page]:
        token: str | None = None

        while True:
            iterator = self._client.list_blobs(
                bucket,
                prefix=prefix,
                page_size=page_size,
                page_token=token,
                **self._request_kwargs(),
            )
            page = next(iter(iterator.pages), None)
            keys = tuple(blob.name for blob in page) if page is not None else ()
            if keys:
                yield Page(bucket=bucket, keys=keys)

            token = iterator.next_page_token
            if not token:
                break

    def delete(self, bucket: str, key: str) -> bool:
        blob = self._get_bucket(bucket).blob(key)
        try:
            blob.delete(**self._request_kwargs())
        except NotFound as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e
        return True

    def stream_download(
        self,
        bucket: str,
        key: str,
        chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        blob = self._get_bucket(bucket).get_blob(key, **self._request_kwargs())
        if blob is None:
            raise ObjectNotFoundError(bucket=bucket, key=key)
        return self._iter_ranges(ObjectRef(bucket=bucket, key=key), blob, chunk_size)

    def _iter_ranges(
        self, ref: ObjectRef, blob: Any, chunk_size: int
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        size = int(blob.size or 0)
        for start in range(0, size, chunk_size):
            end = min(start + chunk_size, size) - 1
            yield ref, blob.download_as_bytes(start=start, end=end, **self._request_kwargs())

    def stream_upload(self, bucket: str, key: str) -> UploadSink:
        blob = self._get_bucket(bucket).blob(key)
        return _GcsWriterSink(blob, bucket, key, self._request_kwargs())

    def move(self, bucket: str, key: str, new_bucket: str, new_key: str) -> ObjectRef:
        source_bucket = self._get_bucket(bucket)
        source_blob = source_bucket.blob(key)
        try:
            source_bucket.copy_blob(
                source_blob,
                self._get_bucket(new_bucket),
                new_key,
                **self._request_kwargs(),
            )
            if (bucket, key) != (new_bucket, new_key):
                source_blob.delete(**self._request_kwargs())
        except NotFound as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e
        return ObjectRef(bucket=new_bucket, key=new_key)
