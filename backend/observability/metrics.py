"""
Timing helpers for observability.

Responsibilities:
- Measure durations using monotonic time
- Emit each measurement as one JSONL event via observability.logger
- Never aggregate: one metric = one log event

Durations use monotonic time; event timestamps (ts_ms) use wall-clock time.
Prefer the `timed()` context manager so timers cannot leak.
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event, now_ms


# timer_id -> (metric_name, start_time_ns)
_active_timers: dict[str, tuple[str, int]] = {}


def start_timer(name: str) -> str:
    """
    Start a monotonic timer and return its opaque id.

    Callers MUST call stop_timer() in a finally block
    unless using the `timed()` context manager.
    """
    timer_id = f"timer_{uuid.uuid4().hex[:12]}"
    _active_timers[timer_id] = (name, time.monotonic_ns())
    return timer_id


def stop_timer(
    timer_id: str,
    *,
    session_id: str | None = None,
    outcome: str = "ok",
    details: dict[str, Any] | None = None,
) -> int | None:
    """
    Stop a timer and emit a METRIC_TIMER event.

    Returns:
        duration_ms if the timer existed, else None
    """
    entry = _active_timers.pop(timer_id, None)
    if entry is None:
        return None

    name, start_ns = entry
    duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000

    log_event({
        "ts_ms": now_ms(),
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": duration_ms,
        "session_id": session_id,
        "outcome": outcome,
        "details": details or {},
    })

    return duration_ms


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Measure the enclosed block.

    The metric is emitted exactly once, with outcome "error" if the block
    raised. Exceptions are never suppressed.

    Usage:
        with timed("session_connect_latency", session_id=sid):
            await transport.connect(...)
    """
    timer_id = start_timer(name)
    outcome = "error"
    try:
        yield
        outcome = "ok"
    finally:
        stop_timer(
            timer_id,
            session_id=session_id,
            outcome=outcome,
            details=details,
        )
