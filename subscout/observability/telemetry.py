"""
In-process telemetry for the extraction pipeline.

Nothing is shipped externally. Events go to the "subscout.telemetry" logger;
counters and latency samples stay in memory so tests can assert
instrumentation (e.g. that a prefilter rejection never reached a backend).
Batch workers share this state, so every mutation takes _LOCK.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("subscout.telemetry")

_COUNTERS: dict[str, int] = {}
_LATENCIES_MS: dict[str, list[float]] = {}
_LOCK = threading.Lock()


def _latency_key(metric_name: str) -> str:
    return metric_name if metric_name.endswith("_ms") else f"{metric_name}_ms"


def log_event(event_name: str, **fields: Any) -> None:
    """Structured info-level event. Callers pass ids and counts, never raw email text."""
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """Increment an in-memory counter; returns the new value."""
    with _LOCK:
        value = _COUNTERS[name] = _COUNTERS.get(name, 0) + increment
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counter(name: str) -> int:
    with _LOCK:
        return _COUNTERS.get(name, 0)


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """Record the block's wall time, in milliseconds, under `<metric_name>_ms`."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        key = _latency_key(metric_name)
        logger.debug("timing=%s ms=%.3f", key, elapsed_ms)
        with _LOCK:
            _LATENCIES_MS.setdefault(key, []).append(elapsed_ms)


def get_latency_samples(metric_name: str) -> list[float]:
    with _LOCK:
        return list(_LATENCIES_MS.get(_latency_key(metric_name), []))


def reset_counters() -> None:
    """Clear counters and latency samples (tests)."""
    with _LOCK:
        _COUNTERS.clear()
        _LATENCIES_MS.clear()
