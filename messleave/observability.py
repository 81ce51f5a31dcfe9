"""
Lightweight tracing for backend calls.

Every request to the mess API is wrapped in a span so that slow previews,
failing submissions and stalled history reloads can be reconstructed from
the logs alone.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger("messleave.trace")


@contextmanager
def trace_span(name: str, **metadata):
    """
    Log how long a backend operation took and whether it succeeded.

    Example log:
    [TRACE] preview_leave_request outcome=ok duration_ms=43.21 plans=2

    A span whose block raises is logged at WARNING with ``outcome=error`` and
    the exception type; the exception itself is re-raised unchanged.
    """
    start = time.perf_counter()
    outcome, level = "ok", logging.INFO
    try:
        yield
    except Exception as e:
        outcome, level = f"error error={type(e).__name__}", logging.WARNING
        raise
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        fields = " ".join(f"{key}={value}" for key, value in metadata.items())
        logger.log(level, "[TRACE] %s outcome=%s duration_ms=%.2f %s", name, outcome, elapsed_ms, fields)
