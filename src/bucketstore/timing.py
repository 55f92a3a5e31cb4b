"""Timing helpers for operation durations."""

from __future__ import annotations

import time


def monotonic_now() -> float:
    """Return a monotonic timestamp in seconds.

    Durations are measured against the monotonic clock so that wall clock
    adjustments never show up as negative or inflated timings.
    """
    return time.monotonic()


def elapsed_since(start: float) -> float:
    """Return seconds elapsed since a monotonic_now() timestamp."""
    return monotonic_now() - start
