"""In-memory storage backend.

Keeps objects in a nested mapping ``bucket -> key -> bytes`` owned by an
InMemoryStore. Adapters built for ``inmemory://`` URIs share one process-wide
default store; tests can reset it or inject their own.

Not thread-safe: concurrent mutation of the same store from several threads
is undefined. Callers needing isolation reset the store between units of work.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterator
from typing import TYPE_CHECKING, BinaryIO

from bucketstore.adapters.base import (
    DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    StorageAdapter,
    UploadSink,
    read_content,
)
from bucketstore.errors import ObjectNotFoundError
from bucketstore.models import DownloadResult, ObjectRef, Page

if TYPE_CHECKING:
    from bucketstore.config import BucketStoreConfig

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Mutable object storage living in process memory."""

    def __init__(self) -> None:
        self._buckets: defaultdict[str, dict[str, bytes]] = defaultdict(dict)

    def reset(self) -> None:
        """Drop every bucket and object."""
        self._buckets = defaultdict(dict)

    def bucket(self, name: str) -> dict[str, bytes]:
        """Return the key mapping of a bucket, creating it on first use."""
        return self._buckets[name]

    def bucket_names(self) -> list[str]:
        return sorted(self._buckets)


_default_store: InMemoryStore | None = None


def default_store() -> InMemoryStore:
    """Return the process-wide store used for ``inmemory://`` URIs."""
    global _default_store  # noqa: PLW0603
    if _default_store is None:
        _default_store = InMemoryStore()
    return _default_store


def reset_default_store() -> None:
    """Reset the process-wide store (test isolation)."""
    default_store().reset()


class _InMemorySink(UploadSink):
    """Buffers chunks and publishes them on finalize."""

    def __init__(self, store: InMemoryStore, bucket: str, key: str) -> None:
        super().__init__(bucket, key)
        self._store = store
        self._buffer = bytearray()

    def _write_chunk(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)

    def _finalize(self) -> None:
        self._store.bucket(self.bucket)[self.key] = bytes(self._buffer)
        self._buffer = bytearray()

    def _discard(self) -> None:
        self._buffer = bytearray()


class InMemoryAdapter(StorageAdapter):
    """In-memory storage adapter.

    Deleting an absent key succeeds silently.
    """

    supports_move = True

    def __init__(self, store: InMemoryStore | None = None) -> None:
        self._store = store if store is not None else default_store()

    @classmethod
    def build(cls, config: BucketStoreConfig | None = None) -> InMemoryAdapter:
        """Build an adapter over the process-wide default store."""
        return cls(default_store())

    @property
    def backend_name(self) -> str:
        return "inmemory"

    @property
    def store(self) -> InMemoryStore:
        return self._store

    def _fetch(self, bucket: str, key: str) -> bytes:
        try:
            return self._store.bucket(bucket)[key]
        except KeyError as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e

    def upload(self, bucket: str, key: str, content: bytes | BinaryIO) -> ObjectRef:
        self._store.bucket(bucket)[key] = read_content(content)
        return ObjectRef(bucket=bucket, key=key)

    def download(self, bucket: str, key: str) -> DownloadResult:
        return DownloadResult(bucket=bucket, key=key, content=self._fetch(bucket, key))

    def list(self, bucket: str, prefix: str, page_size: int) -> Iterator[Page]:
        objects = self._store.bucket(bucket)
        matching = sorted(k for k in list(objects) if k.startswith(prefix))
        for start in range(0, len(matching), page_size):
            yield Page(bucket=bucket, keys=tuple(matching[start : start + page_size]))

    def delete(self, bucket: str, key: str) -> bool:
        self._store.bucket(bucket).pop(key, None)
        return True

    def stream_download(
        self,
        bucket: str,
        key: str,
        chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        content = self._fetch(bucket, key)
        return self._iter_chunks(ObjectRef(bucket=bucket, key=key), content, chunk_size)

    @staticmethod
    def _iter_chunks(
        ref: ObjectRef, content: bytes, chunk_size: int
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        view = memoryview(content)
        for start in range(0, len(view), chunk_size):
            yield ref, bytes(view[start : start + chunk_size])

    def stream_upload(self, bucket: str, key: str) -> UploadSink:
        return _InMemorySink(self._store, bucket, key)

    def move(self, bucket: str, key: str, new_bucket: str, new_key: str) -> ObjectRef:
        content = self._fetch(bucket, key)
        self._store.bucket(new_bucket)[new_key] = content
        if (bucket, key) != (new_bucket, new_key):
            del self._store.bucket(bucket)[key]
        return ObjectRef(bucket=new_bucket, key=new_key)
