"""OpenTelemetry tracing for KeyStorage operations.

Spans are only emitted when BUCKETSTORE_OTEL_ENABLED is set and the
opentelemetry package is importable.

Span attributes never include raw object keys, which may carry sensitive
identifiers; a SHA256 of the key is exported for correlation instead.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
from collections.abc import Callable
from typing import Any, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

ENV_OTEL_ENABLED = "BUCKETSTORE_OTEL_ENABLED"


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no", ""):
        return default
    return default


def is_otel_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return _get_env_bool(ENV_OTEL_ENABLED, False)


def key_sha256(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def traced_key_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace a KeyStorage operation with OpenTelemetry.

    The decorated method's instance must expose adapter_type, bucket and key.

    Args:
        operation: Operation name (e.g., "download", "upload", "delete").

    Returns:
        Decorated function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not is_otel_enabled():
                return func(self, *args, **kwargs)

            try:
                from opentelemetry import trace
            except ImportError:
                return func(self, *args, **kwargs)

            tracer = trace.get_tracer("bucketstore.key_storage")
            with tracer.start_as_current_span(f"bucketstore.key_storage.{operation}") as span:
                span.set_attribute("bucketstore.adapter", str(self.adapter_type))
                span.set_attribute("bucketstore.bucket", self.bucket)
                span.set_attribute("bucketstore.key_sha256", key_sha256(self.key))

                try:
                    result = func(self, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result, operation)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, operation: str) -> None:
    """Add safe result-based attributes to a span."""
    from bucketstore.models import DownloadResult

    if isinstance(result, DownloadResult):
        span.set_attribute("bucketstore.object_size_bytes", len(result.content))
    elif operation == "exists" and isinstance(result, bool):
        span.set_attribute("bucketstore.exists", result)
