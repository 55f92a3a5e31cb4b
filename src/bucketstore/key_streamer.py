"""Chunked transfer facade.

KeyStreamer moves objects through bounded memory: downloads are produced one
chunk at a time as the caller advances, uploads are pushed chunk by chunk into
an adapter sink that is finalized before the call returns.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from bucketstore.adapters import AdapterName, StorageAdapter, UploadSink
from bucketstore.adapters.base import DEFAULT_STREAM_CHUNK_SIZE_BYTES
from bucketstore.errors import InvalidArgumentError
from bucketstore.key_context import KeyContext
from bucketstore.models import ObjectRef
from bucketstore.timing import elapsed_since, monotonic_now

logger = logging.getLogger(__name__)


class KeyStreamer:
    """Streaming interface bound to one adapter, bucket and key.

    Obtained from KeyStorage.stream rather than built directly.
    """

    def __init__(
        self,
        adapter: StorageAdapter,
        adapter_type: AdapterName,
        bucket: str,
        key: str,
    ) -> None:
        self._adapter = adapter
        self.adapter_type = adapter_type
        self.bucket = bucket
        self.key = key

    @property
    def uri(self) -> str:
        return KeyContext(adapter=str(self.adapter_type), bucket=self.bucket, key=self.key).to_uri()

    def _require_key(self) -> None:
        if not self.key:
            raise InvalidArgumentError(
                "Streaming requires a non-empty key", bucket=self.bucket
            )

    def _log_fields(self, event: str, **fields: object) -> dict[str, object]:
        return {
            "event": event,
            "adapter_type": str(self.adapter_type),
            "bucket": self.bucket,
            "key": self.key,
            **fields,
        }

    def download(self, chunk_size: int | None = None) -> Iterator[tuple[ObjectRef, bytes]]:
        """Download the object in chunks.

        Args:
            chunk_size: Maximum bytes per chunk. Defaults to 4 MiB.

        Returns:
            Iterator of (ObjectRef, chunk) pairs. The ObjectRef is the same for
            every chunk and the last chunk may be shorter than chunk_size.

        Raises:
            InvalidArgumentError: If the key is empty or chunk_size is not positive.
            ObjectNotFoundError: If the object does not exist.
        """
        self._require_key()
        if chunk_size is None:
            chunk_size = DEFAULT_STREAM_CHUNK_SIZE_BYTES
        elif chunk_size <= 0:
            raise InvalidArgumentError(
                f"chunk_size must be a positive integer, got {chunk_size}",
                bucket=self.bucket,
                key=self.key,
            )

        logger.info(
            "key_streamer.download_started",
            extra=self._log_fields("key_streamer.download_started", chunk_size=chunk_size),
        )
        chunks = self._adapter.stream_download(self.bucket, self.key, chunk_size)
        return self._iter_logged(chunks)

    def _iter_logged(
        self, chunks: Iterator[tuple[ObjectRef, bytes]]
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        start = monotonic_now()
        bytes_read = 0
        for ref, chunk in chunks:
            bytes_read += len(chunk)
            yield ref, chunk

        logger.info(
            "key_streamer.download_finished",
            extra=self._log_fields(
                "key_streamer.download_finished",
                bytes_read=bytes_read,
                duration=elapsed_since(start),
            ),
        )

    def upload(self, chunks: Iterable[bytes | str]) -> str:
        """Upload an object from a sequence of chunks.

        Strings are UTF-8 encoded. The object is finalized before returning;
        if iterating chunks raises, the partial upload is discarded.

        Returns:
            URI of the uploaded object.
        """
        with self.open_upload() as sink:
            for chunk in chunks:
                sink.write(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
        return self.uri

    @contextmanager
    def open_upload(self) -> Iterator[UploadSink]:
        """Open a sink for a streamed upload.

        The sink is finalized when the block exits normally and aborted when
        it raises::

            with storage.stream.open_upload() as sink:
                for part in parts:
                    sink.write(part)
        """
        self._require_key()
        start = monotonic_now()
        logger.info(
            "key_streamer.upload_started",
            extra=self._log_fields("key_streamer.upload_started"),
        )

        with self._adapter.stream_upload(self.bucket, self.key) as sink:
            yield sink

        logger.info(
            "key_streamer.upload_finished",
            extra=self._log_fields(
                "key_streamer.upload_finished",
                bytes_written=sink.bytes_written,
                duration=elapsed_since(start),
            ),
        )
