"""
Output timeline cursor.

The cursor marks where the last scheduled buffer ends on the output
device's clock. It is mutated through exactly two operations:

- schedule_after(duration): start = max(cursor, now); cursor = start + duration
- reset(): cursor = 0.0, so the next buffer starts relative to "now"

next_start() reads the start a reservation would get without making it, so
a caller can hand that start to the device first and commit it with
schedule_after(duration, start=...) only once the device accepted it.

Successive schedule_after() calls therefore produce back-to-back, gapless,
non-overlapping start times as long as each call happens before the
previous buffer finishes playing.
"""

from __future__ import annotations

from typing import Callable


Clock = Callable[[], float]


class OutputTimeline:
    """Monotonic playback cursor over a device clock (seconds)."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._cursor: float = 0.0

    @property
    def cursor(self) -> float:
        """End of the last scheduled buffer (read-only)."""
        return self._cursor

    def next_start(self) -> float:
        """Start time the next reservation would get. Reserves nothing."""
        return max(self._cursor, self._clock())

    def schedule_after(self, duration: float, *, start: float | None = None) -> float:
        """
        Reserve `duration` seconds on the timeline and return the start time.

        Never earlier than the device clock's current time. An explicit
        `start` (from next_start()) commits that exact slot; it may not
        overlap the previous reservation.
        """
        if duration < 0:
            raise ValueError("duration must be >= 0")

        if start is None:
            start = self.next_start()
        elif start < self._cursor:
            raise ValueError("start overlaps the previous reservation")

        self._cursor = start + duration
        return start

    def reset(self) -> None:
        """Forget all reservations (used after a flush)."""
        self._cursor = 0.0
