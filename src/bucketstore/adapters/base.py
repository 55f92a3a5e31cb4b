"""Storage adapter interface definition.

Provides the StorageAdapter base class that every backend implements, and the
UploadSink base class used by streamed uploads.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from types import TracebackType
from typing import TYPE_CHECKING, BinaryIO, Final

from bucketstore.errors import SinkClosedError, UnsupportedOperationError
from bucketstore.models import DownloadResult, ObjectRef, Page

if TYPE_CHECKING:
    from bucketstore.config import BucketStoreConfig

logger = logging.getLogger(__name__)

DEFAULT_STREAM_CHUNK_SIZE_BYTES: Final[int] = 4 * 1024 * 1024


def read_content(content: bytes | BinaryIO) -> bytes:
    """Return the bytes of content given either as bytes or a readable stream."""
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    return content.read()


class UploadSink(ABC):
    """Append-only destination for a streamed upload.

    Chunks are written in order with write(); the object only becomes visible
    once close() finalizes it. abort() discards everything written so far.
    Used as a context manager, the sink is finalized when the block exits
    normally and aborted when it raises.
    """

    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        self._closed = False
        self._bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    def write(self, chunk: bytes) -> int:
        """Append a chunk to the object being uploaded.

        Returns:
            Number of bytes accepted.

        Raises:
            SinkClosedError: If the sink was already finalized or aborted.
        """
        if self._closed:
            raise SinkClosedError("Upload sink is closed", bucket=self.bucket, key=self.key)
        if not chunk:
            return 0
        self._write_chunk(bytes(chunk))
        self._bytes_written += len(chunk)
        return len(chunk)

    def close(self) -> ObjectRef:
        """Finalize the upload and make the object visible.

        Raises:
            SinkClosedError: If the sink was already finalized or aborted.
        """
        if self._closed:
            raise SinkClosedError("Upload sink is closed", bucket=self.bucket, key=self.key)
        self._closed = True
        self._finalize()
        logger.debug(
            "Finalized streamed upload: bucket=%s key=%s bytes=%d",
            self.bucket,
            self.key,
            self._bytes_written,
        )
        return ObjectRef(bucket=self.bucket, key=self.key)

    def abort(self) -> None:
        """Discard the upload. A no-op once the sink is closed."""
        if self._closed:
            return
        self._closed = True
        self._discard()
        logger.debug("Aborted streamed upload: bucket=%s key=%s", self.bucket, self.key)

    def __enter__(self) -> UploadSink:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.abort()
        elif not self._closed:
            self.close()

    @abstractmethod
    def _write_chunk(self, chunk: bytes) -> None:
        """Accept one non-empty chunk."""
        ...

    @abstractmethod
    def _finalize(self) -> None:
        """Make the written content visible under the destination key."""
        ...

    @abstractmethod
    def _discard(self) -> None:
        """Release everything written without publishing it."""
        ...


class StorageAdapter(ABC):
    """Abstract base class for storage backends.

    All implementations must provide:
    - Full-overwrite uploads with no partial-write visibility
    - Bucket isolation (a key in bucket A is never visible from bucket B)
    - Lazy, finite, non-restartable paginated listing by plain string prefix,
      in lexicographic key order
    - Chunked streaming in both directions

    Implementations:
    - DiskAdapter: Local filesystem
    - InMemoryAdapter: In-process store
    - S3Adapter: AWS S3 and S3-compatible stores
    - GcsAdapter: Google Cloud Storage
    """

    supports_move: bool = False

    @classmethod
    def build(cls, config: BucketStoreConfig | None = None) -> StorageAdapter:
        """Build an adapter from configuration (loaded from the environment when None)."""
        raise NotImplementedError(f"{cls.__name__} cannot be built from configuration")

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability (e.g. "disk", "s3")."""
        ...

    @abstractmethod
    def upload(self, bucket: str, key: str, content: bytes | BinaryIO) -> ObjectRef:
        """Store an object, replacing any existing content.

        Args:
            bucket: Destination bucket.
            key: Destination key.
            content: Object content as bytes or a readable binary stream.

        Returns:
            Reference to the stored object.
        """
        ...

    @abstractmethod
    def download(self, bucket: str, key: str) -> DownloadResult:
        """Retrieve an object with its full content.

        Raises:
            ObjectNotFoundError: If the key does not exist in the bucket.
        """
        ...

    @abstractmethod
    def list(self, bucket: str, prefix: str, page_size: int) -> Iterator[Page]:
        """List keys starting with prefix, one page of at most page_size keys at a time.

        Pages are computed as the caller advances the iterator.
        """
        ...

    @abstractmethod
    def delete(self, bucket: str, key: str) -> bool:
        """Delete an object. Always returns True.

        Whether deleting an absent key raises ObjectNotFoundError is
        backend-specific and documented on each implementation.
        """
        ...

    @abstractmethod
    def stream_download(
        self,
        bucket: str,
        key: str,
        chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        """Download an object in chunks of at most chunk_size bytes.

        Absence is detected when this method is called. Chunks are then read
        as the caller advances the iterator, each paired with the same
        ObjectRef. An empty object produces no chunks.

        Raises:
            ObjectNotFoundError: If the key does not exist in the bucket.
        """
        ...

    @abstractmethod
    def stream_upload(self, bucket: str, key: str) -> UploadSink:
        """Open a sink that uploads chunks to bucket/key once finalized."""
        ...

    def move(self, bucket: str, key: str, new_bucket: str, new_key: str) -> ObjectRef:
        """Rename an object within this adapter.

        Optional capability; adapters that implement it set supports_move.

        Raises:
            UnsupportedOperationError: If the adapter cannot move objects.
            ObjectNotFoundError: If the source key does not exist.
        """
        raise UnsupportedOperationError(
            f"Adapter {self.backend_name} does not support move",
            bucket=bucket,
            key=key,
        )
