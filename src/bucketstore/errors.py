"""Bucket store error types.

Every error raised by this package derives from BucketStoreError. Errors from
the storage backends themselves (network failures, permission errors, a full
disk) are not wrapped and reach the caller as raised by the backend client.
"""

from __future__ import annotations


class BucketStoreError(Exception):
    """Base exception for bucket store operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket associated with the operation (if applicable).
        key: Object key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class KeyParseError(BucketStoreError):
    """Raised when a URI cannot be parsed into adapter, bucket and key."""

    def __init__(self, message: str = "Unable to parse key", *, raw_key: object = None) -> None:
        super().__init__(message)
        self.raw_key = raw_key


KeyParseException = KeyParseError


class InvalidArgumentError(BucketStoreError, ValueError):
    """Raised when an operation is called with arguments it cannot accept.

    Examples are an empty key on download, a non-positive page or chunk size,
    or a move across two different adapters.
    """


class PathTraversalError(InvalidArgumentError):
    """Raised when a disk key resolves outside of its bucket directory."""

    def __init__(
        self,
        message: str = "Directory traversal out of bucket boundaries",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class ObjectNotFoundError(BucketStoreError):
    """Raised when the addressed object does not exist in its bucket."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class UnknownAdapterError(BucketStoreError, ValueError):
    """Raised when a URI scheme does not name a registered adapter."""

    def __init__(self, adapter: str) -> None:
        super().__init__(f"Unknown adapter: {adapter}")
        self.adapter = adapter


class UnsupportedOperationError(BucketStoreError):
    """Raised when an adapter does not implement an optional capability."""


class SinkClosedError(BucketStoreError):
    """Raised when writing to an upload sink that was finalized or aborted."""
