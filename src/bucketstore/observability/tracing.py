"""OpenTelemetry tracer provider setup for bucketstore.

Environment Variables:
    BUCKETSTORE_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    BUCKETSTORE_OTEL_SERVICE_NAME: Service name for spans (default: "bucketstore")
    BUCKETSTORE_OTEL_TEST_CAPTURE: Set to "1" to capture spans in memory for tests

Spans go to the console exporter unless test capture is on. Applications
that already install their own TracerProvider do not need to call
configure_tracing(); spans from bucketstore.tracing use the global provider.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

from bucketstore.tracing import ENV_OTEL_ENABLED, _get_env_bool, is_otel_enabled

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan

logger = logging.getLogger(__name__)

ENV_OTEL_SERVICE_NAME = "BUCKETSTORE_OTEL_SERVICE_NAME"
ENV_OTEL_TEST_CAPTURE = "BUCKETSTORE_OTEL_TEST_CAPTURE"

_is_configured: bool = False
_test_exporter: Any = None


class TracingConfigError(Exception):
    """Raised when the OpenTelemetry SDK is unavailable or fails to configure."""


def configure_tracing() -> bool:
    """Install an OpenTelemetry tracer provider for bucketstore.

    Idempotent - safe to call multiple times. A TracerProvider can only be
    set once per process, so an existing in-memory exporter is reused.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If tracing is enabled but the SDK cannot be set up.
    """
    global _is_configured, _test_exporter  # noqa: PLW0603

    if not is_otel_enabled():
        logger.debug("OpenTelemetry tracing disabled (%s not set)", ENV_OTEL_ENABLED)
        return False

    if _is_configured:
        return True

    test_capture = _get_env_bool(ENV_OTEL_TEST_CAPTURE, False)

    # The global provider from an earlier configuration still feeds this exporter.
    if test_capture and _test_exporter is not None:
        _is_configured = True
        return True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )
    except ImportError as e:
        raise TracingConfigError(f"OpenTelemetry SDK is not installed: {e}") from e

    service_name = os.environ.get(ENV_OTEL_SERVICE_NAME, "").strip() or "bucketstore"

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if test_capture:
        _test_exporter = InMemorySpanExporter()
        provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _is_configured = True

    logger.info(
        "OpenTelemetry tracing configured: service=%s, exporter=%s",
        service_name,
        "in-memory" if test_capture else "console",
    )
    return True


def get_test_spans() -> list[ReadableSpan]:
    """Get captured spans from the in-memory exporter (for testing)."""
    if _test_exporter is None:
        return []
    return list(_test_exporter.get_finished_spans())


def clear_test_spans() -> None:
    """Clear captured spans from the in-memory exporter (for testing)."""
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Reset tracing configuration (for testing).

    The OpenTelemetry TracerProvider cannot be replaced once set, so the
    in-memory exporter is kept and only its spans are cleared.
    """
    global _is_configured  # noqa: PLW0603

    clear_test_spans()
    _is_configured = False
