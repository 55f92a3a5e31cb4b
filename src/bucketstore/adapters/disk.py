"""Disk storage backend.

Buckets are directories under a base directory and keys are relative file
paths inside them:
    {base_dir}/{bucket}/{key}

Protections:
- Bucket and key are sanitized: characters outside [0-9A-Za-z._- /] become "_"
- The resolved path must stay inside its bucket directory, and the bucket
  directory inside the base directory; anything else is a PathTraversalError
- Writes go to a hidden temp file next to the destination and are renamed
  into place, so readers never observe a half-written object

Environment Variables:
    DISK_ADAPTER_BASE_DIR: Base directory (default: tempfile.gettempdir())
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from bucketstore.adapters.base import (
    DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    StorageAdapter,
    UploadSink,
)
from bucketstore.errors import ObjectNotFoundError, PathTraversalError
from bucketstore.models import DownloadResult, ObjectRef, Page

if TYPE_CHECKING:
    from bucketstore.config import BucketStoreConfig

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_PATTERN = re.compile(r"[^0-9A-Za-z._\- /]")

_PARTIAL_SUFFIX = ".partial"
_PARTIAL_FILE_PATTERN = re.compile(r"^\..+\.[0-9a-f]{32}\.partial$")


def sanitize_filename(filename: str) -> str:
    """Replace characters that could break a filesystem path with "_"."""
    return _UNSAFE_CHARS_PATTERN.sub("_", filename)


def _partial_path(target: Path) -> Path:
    return target.with_name(f".{target.name}.{uuid.uuid4().hex}{_PARTIAL_SUFFIX}")


class _DiskSink(UploadSink):
    """Streams chunks into a temp file renamed onto the key at finalize."""

    def __init__(self, bucket: str, key: str, target: Path) -> None:
        super().__init__(bucket, key)
        self._target = target
        self._tmp_path = _partial_path(target)
        self._file = self._tmp_path.open("wb")

    def _write_chunk(self, chunk: bytes) -> None:
        self._file.write(chunk)

    def _finalize(self) -> None:
        try:
            self._file.close()
            os.replace(self._tmp_path, self._target)
        except OSError:
            self._tmp_path.unlink(missing_ok=True)
            raise

    def _discard(self) -> None:
        self._file.close()
        self._tmp_path.unlink(missing_ok=True)


class DiskAdapter(StorageAdapter):
    """Filesystem-based storage adapter.

    Deleting an absent key raises ObjectNotFoundError.
    """

    supports_move = True

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir).expanduser().resolve()
        logger.debug("DiskAdapter initialized with base_dir=%s", self._base_dir)

    @classmethod
    def build(cls, config: BucketStoreConfig | None = None) -> DiskAdapter:
        """Build an adapter rooted at the configured base directory."""
        if config is None:
            from bucketstore.config import load_config

            config = load_config()
        return cls(config.disk_base_dir)

    @property
    def backend_name(self) -> str:
        return "disk"

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _bucket_root(self, bucket: str) -> Path:
        root = (self._base_dir / sanitize_filename(bucket)).resolve()
        if root == self._base_dir or not root.is_relative_to(self._base_dir):
            raise PathTraversalError(
                message="Bucket resolves outside the base directory",
                bucket=bucket,
            )
        return root

    def _key_path(self, bucket: str, key: str) -> Path:
        """Resolve the file path of a key, rejecting any escape from its bucket."""
        root = self._bucket_root(bucket)
        # "/x" names x inside the bucket, not the filesystem root
        path = (root / sanitize_filename(key).lstrip("/")).resolve()
        if path == root or not path.is_relative_to(root):
            raise PathTraversalError(bucket=bucket, key=key)
        return path

    def _writable_path(self, bucket: str, key: str) -> Path:
        path = self._key_path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def _open_for_read(self, bucket: str, key: str) -> BinaryIO:
        return self._open_path(self._key_path(bucket, key), bucket, key)

    @staticmethod
    def _open_path(path: Path, bucket: str, key: str) -> BinaryIO:
        try:
            return path.open("rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e

    def upload(self, bucket: str, key: str, content: bytes | BinaryIO) -> ObjectRef:
        path = self._writable_path(bucket, key)
        tmp_path = _partial_path(path)
        try:
            with tmp_path.open("wb") as output:
                if isinstance(content, (bytes, bytearray, memoryview)):
                    output.write(content)
                else:
                    shutil.copyfileobj(content, output)
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.debug("Stored object: bucket=%s key=%s", bucket, key)
        return ObjectRef(bucket=bucket, key=key)

    def download(self, bucket: str, key: str) -> DownloadResult:
        with self._open_for_read(bucket, key) as saved:
            content = saved.read()
        return DownloadResult(bucket=bucket, key=key, content=content)

    def _list_keys(self, bucket: str) -> list[str]:
        root = self._bucket_root(bucket)
        if not root.is_dir():
            return []

        keys = []
        for dirpath, _dirnames, filenames in os.walk(root):
            for filename in filenames:
                if _PARTIAL_FILE_PATTERN.match(filename):
                    continue
                full_path = Path(dirpath) / filename
                keys.append(full_path.relative_to(root).as_posix())
        return sorted(keys)

    def list(self, bucket: str, prefix: str, page_size: int) -> Iterator[Page]:
        matching = [k for k in self._list_keys(bucket) if k.startswith(prefix)]
        for start in range(0, len(matching), page_size):
            yield Page(bucket=bucket, keys=tuple(matching[start : start + page_size]))

    def delete(self, bucket: str, key: str) -> bool:
        path = self._key_path(bucket, key)
        try:
            path.unlink()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e
        logger.debug("Deleted object: bucket=%s key=%s", bucket, key)
        return True

    def stream_download(
        self,
        bucket: str,
        key: str,
        chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE_BYTES,
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        path = self._key_path(bucket, key)
        if not path.is_file():
            raise ObjectNotFoundError(bucket=bucket, key=key)
        return self._iter_chunks(ObjectRef(bucket=bucket, key=key), path, chunk_size)

    def _iter_chunks(
        self, ref: ObjectRef, path: Path, chunk_size: int
    ) -> Iterator[tuple[ObjectRef, bytes]]:
        # Opened on first advance so an unread iterator holds no file handle
        with self._open_path(path, ref.bucket, ref.key) as source:
            while chunk := source.read(chunk_size):
                yield ref, chunk

    def stream_upload(self, bucket: str, key: str) -> UploadSink:
        return _DiskSink(bucket, key, self._writable_path(bucket, key))

    def move(self, bucket: str, key: str, new_bucket: str, new_key: str) -> ObjectRef:
        source = self._key_path(bucket, key)
        if not source.is_file():
            raise ObjectNotFoundError(bucket=bucket, key=key)
        os.replace(source, self._writable_path(new_bucket, new_key))
        return ObjectRef(bucket=new_bucket, key=new_key)
