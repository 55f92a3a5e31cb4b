"""bucketstore - URI-addressed object storage.

Every object is addressed as ``adapter://bucket/key`` and reached through the
same operations whichever backend serves the scheme::

    from bucketstore import for_uri

    for_uri("inmemory://reports/2019-01/summary.xml").upload(b"<xml/>")
    for uri in for_uri("inmemory://reports/2019-01").list():
        print(uri)

Adapters: disk, inmemory, s3, gs. Use sanitize() on free-text key parts
before formatting them into a URI.

Environment Variables:
    DISK_ADAPTER_BASE_DIR: Base directory of the disk adapter (default: OS temp dir)
    BUCKETSTORE_S3_*: S3 client timeouts, endpoint, region and addressing
    BUCKETSTORE_GCS_TIMEOUT_SECONDS: GCS request timeout
    BUCKETSTORE_OTEL_ENABLED: Set to "1" to emit OpenTelemetry spans
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from bucketstore.adapters import AdapterName, StorageAdapter
from bucketstore.errors import (
    BucketStoreError,
    InvalidArgumentError,
    KeyParseError,
    KeyParseException,
    ObjectNotFoundError,
    PathTraversalError,
    SinkClosedError,
    UnknownAdapterError,
    UnsupportedOperationError,
)
from bucketstore.key_context import KeyContext
from bucketstore.key_storage import KeyStorage
from bucketstore.key_streamer import KeyStreamer
from bucketstore.models import DownloadResult, ObjectRef, Page
from bucketstore.uri_builder import sanitize

if TYPE_CHECKING:
    from bucketstore.config import BucketStoreConfig

__version__ = "0.1.0"


def for_uri(
    uri: str,
    *,
    adapter_instance: StorageAdapter | None = None,
    config: BucketStoreConfig | None = None,
) -> KeyStorage:
    """Return a KeyStorage bound to the location a URI names.

    Args:
        uri: URI in the form ``adapter://bucket/key``.
        adapter_instance: Adapter to route to instead of building one.
        config: Configuration used to build the adapter (environment when None).

    Raises:
        KeyParseError: If the URI cannot be parsed.
        UnknownAdapterError: If the scheme is not a registered adapter.
    """
    ctx = KeyContext.parse(uri)
    return KeyStorage(
        ctx.adapter,
        ctx.bucket,
        ctx.key,
        adapter_instance=adapter_instance,
        config=config,
    )


__all__ = [
    "AdapterName",
    "BucketStoreError",
    "DownloadResult",
    "InvalidArgumentError",
    "KeyContext",
    "KeyParseError",
    "KeyParseException",
    "KeyStorage",
    "KeyStreamer",
    "ObjectNotFoundError",
    "ObjectRef",
    "Page",
    "PathTraversalError",
    "SinkClosedError",
    "StorageAdapter",
    "UnknownAdapterError",
    "UnsupportedOperationError",
    "__version__",
    "for_uri",
    "sanitize",
]
