"""Bucket store result models.

Adapters return these frozen dataclasses so that every backend hands back the
same shapes regardless of what its native client returns.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ObjectRef:
    """Location of an object within an adapter.

    Attributes:
        bucket: Bucket holding the object.
        key: Key of the object within the bucket.
    """

    bucket: str
    key: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"bucket": self.bucket, "key": self.key}


@dataclass(frozen=True)
class DownloadResult:
    """A downloaded object with its full content.

    Attributes:
        bucket: Bucket the object was read from.
        key: Key of the object.
        content: Object content as bytes.
    """

    bucket: str
    key: str
    content: bytes

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(bucket=self.bucket, key=self.key)


@dataclass(frozen=True)
class Page:
    """One page of a listing.

    Attributes:
        bucket: Bucket that was listed.
        keys: Raw backend keys on this page, in listing order.
    """

    bucket: str
    keys: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.keys)
