"""Storage adapters and the adapter registry.

The registry is a closed mapping from AdapterName (the URI scheme) to the
adapter class that serves it. Resolution happens when a KeyStorage is
constructed, so an unknown scheme fails before any I/O.

Adapters:
- disk: DiskAdapter (local filesystem)
- inmemory: InMemoryAdapter (process-wide in-memory store)
- s3: S3Adapter (AWS S3 / MinIO via boto3)
- gs: GcsAdapter (Google Cloud Storage)
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Final

from bucketstore.adapters.base import (
    DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    StorageAdapter,
    UploadSink,
)
from bucketstore.adapters.disk import DiskAdapter
from bucketstore.adapters.gcs import GcsAdapter
from bucketstore.adapters.inmemory import (
    InMemoryAdapter,
    InMemoryStore,
    default_store,
    reset_default_store,
)
from bucketstore.adapters.s3 import S3Adapter
from bucketstore.errors import UnknownAdapterError

if TYPE_CHECKING:
    from bucketstore.config import BucketStoreConfig


class AdapterName(str, Enum):
    """Registered adapter names, as they appear in URI schemes."""

    GS = "gs"
    S3 = "s3"
    INMEMORY = "inmemory"
    DISK = "disk"

    def __str__(self) -> str:
        return self.value


SUPPORTED_ADAPTERS: Final[dict[AdapterName, type[StorageAdapter]]] = {
    AdapterName.GS: GcsAdapter,
    AdapterName.S3: S3Adapter,
    AdapterName.INMEMORY: InMemoryAdapter,
    AdapterName.DISK: DiskAdapter,
}


def resolve_adapter_name(name: str | AdapterName) -> AdapterName:
    """Return the registered AdapterName for a scheme.

    Raises:
        UnknownAdapterError: If the name is not registered.
    """
    try:
        return AdapterName(name)
    except ValueError as e:
        raise UnknownAdapterError(str(name)) from e


def build_adapter(
    name: str | AdapterName,
    config: BucketStoreConfig | None = None,
) -> StorageAdapter:
    """Build the adapter registered under name.

    Args:
        name: Adapter name (URI scheme).
        config: Configuration to build with. Loaded from the environment when
            None.

    Raises:
        UnknownAdapterError: If the name is not registered.
    """
    adapter_cls = SUPPORTED_ADAPTERS[resolve_adapter_name(name)]
    return adapter_cls.build(config)


__all__ = [
    "AdapterName",
    "DEFAULT_STREAM_CHUNK_SIZE_BYTES",
    "DiskAdapter",
    "GcsAdapter",
    "InMemoryAdapter",
    "InMemoryStore",
    "S3Adapter",
    "SUPPORTED_ADAPTERS",
    "StorageAdapter",
    "UploadSink",
    "build_adapter",
    "default_store",
    "reset_default_store",
    "resolve_adapter_name",
]
