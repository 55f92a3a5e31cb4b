"""URI key parsing.

A key is a URI of the form ``adapter://bucket/path/to/object``. Parsing turns
it into the coordinates the router needs: which adapter, which bucket, and the
key inside that bucket.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, unquote, urlsplit

from bucketstore.errors import KeyParseError

# Only the characters that delimit scheme, bucket and path survive escaping.
_SAFE_URI_CHARS = "/:"


def _escape(raw: str) -> str:
    return quote(raw, safe=_SAFE_URI_CHARS)


def _unescape(component: str) -> str:
    return unquote(component)


@dataclass(frozen=True)
class KeyContext:
    """Routable coordinates of a URI key.

    Attributes:
        adapter: Adapter name taken from the URI scheme.
        bucket: Bucket name taken from the URI host.
        key: Object key inside the bucket. May be empty, which addresses the
            whole bucket. That is valid for listing but not for reads/writes.
    """

    adapter: str
    bucket: str
    key: str

    def __str__(self) -> str:
        return f"<KeyContext adapter:{self.adapter} bucket:{self.bucket} key:{self.key}>"

    def to_uri(self) -> str:
        """Render the context back into ``adapter://bucket/key`` form."""
        return f"{self.adapter}://{self.bucket}/{self.key}"

    @classmethod
    def parse(cls, raw_key: str) -> KeyContext:
        """Parse a raw URI key.

        The input is escaped before generic URI parsing and every component is
        unescaped afterwards, so spaces and ``%`` in bucket or key round-trip.

        Args:
            raw_key: URI in the form ``adapter://bucket/key``.

        Returns:
            The parsed KeyContext.

        Raises:
            KeyParseError: If the scheme or the bucket cannot be determined.
        """
        if not isinstance(raw_key, str):
            raise KeyParseError(
                f"Key must be a string, got {type(raw_key).__name__}", raw_key=raw_key
            )

        try:
            parts = urlsplit(_escape(raw_key))
        except ValueError as e:
            raise KeyParseError(f"Unable to parse key: {raw_key}", raw_key=raw_key) from e

        adapter = _unescape(parts.scheme)
        bucket = _unescape(parts.netloc)

        if not adapter or not bucket:
            raise KeyParseError(f"Unable to parse key: {raw_key}", raw_key=raw_key)

        path = _unescape(parts.path)
        if path.startswith("/"):
            path = path[1:]

        return cls(adapter=adapter, bucket=bucket, key=path)
