"""Bucket store configuration.

Configuration is read from environment variables once per adapter build.
Nothing here changes the adapter contract; it only tells adapters where to
put files and how to reach network backends.

Environment Variables:
    DISK_ADAPTER_BASE_DIR: Base directory for the disk adapter
        (default: OS temp dir)
    BUCKETSTORE_S3_OPEN_TIMEOUT_SECONDS: S3 connect timeout (default: 30)
    BUCKETSTORE_S3_READ_TIMEOUT_SECONDS: S3 read timeout (default: 30)
    BUCKETSTORE_S3_ENDPOINT_URL: Custom S3 endpoint, e.g. MinIO (optional)
    BUCKETSTORE_S3_REGION: S3 region name (optional)
    BUCKETSTORE_S3_FORCE_PATH_STYLE: Use path-style addressing (default: false)
    BUCKETSTORE_GCS_TIMEOUT_SECONDS: GCS request timeout (default: 30)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Final

ENV_DISK_BASE_DIR: Final[str] = "DISK_ADAPTER_BASE_DIR"
ENV_S3_OPEN_TIMEOUT: Final[str] = "BUCKETSTORE_S3_OPEN_TIMEOUT_SECONDS"
ENV_S3_READ_TIMEOUT: Final[str] = "BUCKETSTORE_S3_READ_TIMEOUT_SECONDS"
ENV_S3_ENDPOINT_URL: Final[str] = "BUCKETSTORE_S3_ENDPOINT_URL"
ENV_S3_REGION: Final[str] = "BUCKETSTORE_S3_REGION"
ENV_S3_FORCE_PATH_STYLE: Final[str] = "BUCKETSTORE_S3_FORCE_PATH_STYLE"
ENV_GCS_TIMEOUT: Final[str] = "BUCKETSTORE_GCS_TIMEOUT_SECONDS"

DEFAULT_TIMEOUT_SECONDS: Final[int] = 30


class ConfigError(Exception):
    """Raised when bucket store configuration is invalid."""


@dataclass(frozen=True)
class BucketStoreConfig:
    """Bucket store configuration (immutable).

    Attributes:
        disk_base_dir: Directory under which the disk adapter keeps buckets.
        s3_open_timeout_seconds: Connect timeout for the S3 client.
        s3_read_timeout_seconds: Read timeout for the S3 client.
        s3_endpoint_url: Custom endpoint for S3-compatible stores.
        s3_region: Region for the S3 client.
        s3_force_path_style: Address buckets by path instead of virtual host.
        gcs_timeout_seconds: Request timeout for the GCS client.
    """

    disk_base_dir: Path
    s3_open_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    s3_read_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    s3_force_path_style: bool = False
    gcs_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        """Validate configuration values."""
        for name in ("s3_open_timeout_seconds", "s3_read_timeout_seconds", "gcs_timeout_seconds"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value}")


def _get_env_str(key: str) -> str | None:
    """Get a stripped string from the environment, None when unset or blank."""
    raw = os.environ.get(key)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def _parse_positive_int(env_var: str, default: int) -> int:
    """Parse a positive integer from environment variable.

    Raises:
        ConfigError: If value is set but not a positive integer.
    """
    raw = _get_env_str(env_var)
    if raw is None:
        return default

    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{env_var} must be a positive integer, got '{raw}'") from e

    if value <= 0:
        raise ConfigError(f"{env_var} must be a positive integer, got {value}")

    return value


def load_config() -> BucketStoreConfig:
    """Load bucket store configuration from environment variables.

    Returns:
        BucketStoreConfig with validated values.

    Raises:
        ConfigError: If any value is invalid.
    """
    base_dir = _get_env_str(ENV_DISK_BASE_DIR) or tempfile.gettempdir()

    return BucketStoreConfig(
        disk_base_dir=Path(base_dir),
        s3_open_timeout_seconds=_parse_positive_int(ENV_S3_OPEN_TIMEOUT, DEFAULT_TIMEOUT_SECONDS),
        s3_read_timeout_seconds=_parse_positive_int(ENV_S3_READ_TIMEOUT, DEFAULT_TIMEOUT_SECONDS),
        s3_endpoint_url=_get_env_str(ENV_S3_ENDPOINT_URL),
        s3_region=_get_env_str(ENV_S3_REGION),
        s3_force_path_style=_get_env_bool(ENV_S3_FORCE_PATH_STYLE, False),
        gcs_timeout_seconds=_parse_positive_int(ENV_GCS_TIMEOUT, DEFAULT_TIMEOUT_SECONDS),
    )
