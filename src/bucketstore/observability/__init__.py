"""bucketstore observability module.

Provides OpenTelemetry tracer provider setup for the spans emitted around
KeyStorage operations.
"""

from bucketstore.observability.tracing import (
    TracingConfigError,
    clear_test_spans,
    configure_tracing,
    get_test_spans,
    reset_tracing,
)

__all__ = [
    "TracingConfigError",
    "clear_test_spans",
    "configure_tracing",
    "get_test_spans",
    "reset_tracing",
]
