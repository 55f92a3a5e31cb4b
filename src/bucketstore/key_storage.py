"""URI-routed storage facade.

KeyStorage binds an adapter, a bucket and a key, and dispatches single-object
operations to the adapter. Every operation logs structured start/finish events
with a monotonic duration and, when enabled, emits an OpenTelemetry span.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Generator
from typing import TYPE_CHECKING, BinaryIO

from bucketstore.adapters import AdapterName, StorageAdapter, build_adapter, resolve_adapter_name
from bucketstore.errors import InvalidArgumentError, ObjectNotFoundError
from bucketstore.key_context import KeyContext
from bucketstore.key_streamer import KeyStreamer
from bucketstore.models import DownloadResult, ObjectRef
from bucketstore.timing import elapsed_since, monotonic_now
from bucketstore.tracing import traced_key_operation

if TYPE_CHECKING:
    from bucketstore.config import BucketStoreConfig

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class KeyStorage:
    """Storage operations on one ``adapter://bucket/key`` location.

    The adapter name is resolved when the instance is built, so an unknown
    scheme fails here rather than on the first operation.

    Args:
        adapter: Registered adapter name (URI scheme).
        bucket: Bucket name.
        key: Object key. Empty addresses the whole bucket, which only list()
            and exists() accept.
        adapter_instance: Adapter to use instead of building one from config.
        config: Configuration used to build the adapter (environment when None).

    Raises:
        UnknownAdapterError: If adapter is not a registered name.
        InvalidArgumentError: If bucket is empty.
    """

    def __init__(
        self,
        adapter: str | AdapterName,
        bucket: str,
        key: str,
        *,
        adapter_instance: StorageAdapter | None = None,
        config: BucketStoreConfig | None = None,
    ) -> None:
        self._adapter_type = resolve_adapter_name(adapter)
        if not bucket:
            raise InvalidArgumentError("Bucket must be a non-empty string", key=key)
        self._bucket = bucket
        self._key = key
        self._adapter = (
            adapter_instance
            if adapter_instance is not None
            else build_adapter(self._adapter_type, config)
        )

    @property
    def adapter_type(self) -> AdapterName:
        return self._adapter_type

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def key(self) -> str:
        return self._key

    @property
    def adapter(self) -> StorageAdapter:
        return self._adapter

    @property
    def uri(self) -> str:
        """The location rendered as ``adapter://bucket/key``."""
        return self._render(self._key)

    @property
    def filename(self) -> str:
        """Last path segment of the key."""
        return posixpath.basename(self._key)

    @property
    def stream(self) -> KeyStreamer:
        """Chunked upload/download interface for the same location."""
        return KeyStreamer(self._adapter, self._adapter_type, self._bucket, self._key)

    def __repr__(self) -> str:
        return f"KeyStorage({self.uri!r})"

    def _render(self, key: str, bucket: str | None = None) -> str:
        return KeyContext(
            adapter=str(self._adapter_type),
            bucket=self._bucket if bucket is None else bucket,
            key=key,
        ).to_uri()

    def _log_fields(self, event: str, **fields: object) -> dict[str, object]:
        return {
            "event": event,
            "adapter_type": str(self._adapter_type),
            "bucket": self._bucket,
            "key": self._key,
            **fields,
        }

    def _require_key(self, operation: str) -> None:
        if not self._key:
            raise InvalidArgumentError(
                f"Cannot {operation} an empty key", bucket=self._bucket
            )

    @traced_key_operation("download")
    def download(self) -> DownloadResult:
        """Download the whole object.

        Raises:
            InvalidArgumentError: If the key is empty.
            ObjectNotFoundError: If the object does not exist.
        """
        self._require_key("download")

        start = monotonic_now()
        logger.info(
            "key_storage.download_started",
            extra=self._log_fields("key_storage.download_started"),
        )

        result = self._adapter.download(self._bucket, self._key)

        logger.info(
            "key_storage.download_finished",
            extra=self._log_fields(
                "key_storage.download_finished",
                duration=elapsed_since(start),
            ),
        )
        return result

    @traced_key_operation("upload")
    def upload(self, content: bytes | str | BinaryIO) -> str:
        """Upload content, replacing whatever is stored at the key.

        Args:
            content: Bytes, a string (UTF-8 encoded), or a readable binary stream.

        Returns:
            URI of the uploaded object.

        Raises:
            InvalidArgumentError: If the key is empty.
        """
        self._require_key("upload")
        if isinstance(content, str):
            content = content.encode("utf-8")

        start = monotonic_now()
        logger.info(
            "key_storage.upload_started",
            extra=self._log_fields("key_storage.upload_started"),
        )

        ref = self._adapter.upload(self._bucket, self._key, content)

        logger.info(
            "key_storage.upload_finished",
            extra=self._log_fields(
                "key_storage.upload_finished",
                duration=elapsed_since(start),
            ),
        )
        return self._render(ref.key, ref.bucket)

    def list(self, page_size: int = DEFAULT_PAGE_SIZE) -> Generator[str, None, None]:
        """List the URIs of every object whose key starts with this key.

        The prefix is a plain string prefix: ``a/b`` matches ``a/b/c`` and
        ``a/bc``. Pages are fetched lazily as the returned iterator advances,
        and the iterator cannot be restarted.

        Args:
            page_size: Maximum number of keys fetched per backend request.

        Raises:
            InvalidArgumentError: If page_size is not positive.
        """
        if page_size <= 0:
            raise InvalidArgumentError(
                f"page_size must be a positive integer, got {page_size}",
                bucket=self._bucket,
                key=self._key,
            )

        logger.info(
            "key_storage.list_started",
            extra=self._log_fields("key_storage.list_started", page_size=page_size),
        )
        return self._iter_uris(page_size)

    def _iter_uris(self, page_size: int) -> Generator[str, None, None]:
        start = monotonic_now()
        page_number = 0
        total = 0
        for page in self._adapter.list(self._bucket, self._key, page_size):
            page_number += 1
            total += len(page)
            logger.info(
                "key_storage.list_page_fetched",
                extra=self._log_fields(
                    "key_storage.list_page_fetched",
                    resource_count=len(page),
                    page=page_number,
                    duration=elapsed_since(start),
                ),
            )
            for key in page.keys:
                yield self._render(key, page.bucket)

        # Only reached when the caller drains the listing
        logger.info(
            "key_storage.list_finished",
            extra=self._log_fields(
                "key_storage.list_finished",
                resource_count=total,
                pages=page_number,
                duration=elapsed_since(start),
            ),
        )

    @traced_key_operation("delete")
    def delete(self) -> bool:
        """Delete the object. Always returns True.

        Deleting an absent key raises ObjectNotFoundError on the disk and gs
        adapters and succeeds silently on the inmemory and s3 adapters.

        Raises:
            InvalidArgumentError: If the key is empty.
        """
        self._require_key("delete")

        start = monotonic_now()
        logger.info(
            "key_storage.delete_started",
            extra=self._log_fields("key_storage.delete_started"),
        )

        self._adapter.delete(self._bucket, self._key)

        logger.info(
            "key_storage.delete_finished",
            extra=self._log_fields(
                "key_storage.delete_finished",
                duration=elapsed_since(start),
            ),
        )
        return True

    @traced_key_operation("exists")
    def exists(self) -> bool:
        """Whether an object is stored under exactly this key.

        A key that only prefixes other keys (a "directory") does not exist.
        """
        start = monotonic_now()
        logger.info(
            "key_storage.exists_started",
            extra=self._log_fields("key_storage.exists_started"),
        )

        uris = self.list(page_size=1)
        first = next(uris, None)
        uris.close()
        found = first == self.uri

        logger.info(
            "key_storage.exists_finished",
            extra=self._log_fields(
                "key_storage.exists_finished",
                exists=found,
                duration=elapsed_since(start),
            ),
        )
        return found

    @traced_key_operation("move")
    def move(self, new_uri: str) -> str:
        """Move the object to another key of the same adapter.

        Args:
            new_uri: Destination URI.

        Returns:
            URI of the moved object.

        Raises:
            KeyParseError: If new_uri cannot be parsed.
            InvalidArgumentError: If either key is empty or new_uri names a
                different adapter.
            ObjectNotFoundError: If the source object does not exist.
        """
        destination = KeyContext.parse(new_uri)
        if destination.adapter != str(self._adapter_type):
            raise InvalidArgumentError(
                f"Cannot move across adapters: {self._adapter_type} -> {destination.adapter}",
                bucket=self._bucket,
                key=self._key,
            )
        self._require_key("move")
        if not destination.key:
            raise InvalidArgumentError(
                "Cannot move to an empty key", bucket=destination.bucket
            )

        start = monotonic_now()
        logger.info(
            "key_storage.move_started",
            extra=self._log_fields(
                "key_storage.move_started",
                new_bucket=destination.bucket,
                new_key=destination.key,
            ),
        )

        if (destination.bucket, destination.key) == (self._bucket, self._key):
            if not self.exists():
                raise ObjectNotFoundError(bucket=self._bucket, key=self._key)
            ref = ObjectRef(bucket=self._bucket, key=self._key)
        else:
            ref = self._adapter.move(self._bucket, self._key, destination.bucket, destination.key)

        logger.info(
            "key_storage.move_finished",
            extra=self._log_fields(
                "key_storage.move_finished",
                new_bucket=ref.bucket,
                new_key=ref.key,
                duration=elapsed_since(start),
            ),
        )
        return self._render(ref.key, ref.bucket)
