"""
Gapless playback scheduler.

Responsibilities:
- Decode inbound 24 kHz PCM16 fragments to float32
- Place each fragment on the OutputTimeline so it starts exactly where the
  previous one ends (or "now", whichever is later)
- Track every scheduled buffer in the active set until it finishes
- flush_all(): stop everything still scheduled and reset the timeline

Invariants:
- The active set and the timeline are only touched from the event loop
  thread (scheduler + interruption controller)
- A buffer removed by flush_all() never re-enters the set; a late
  completion callback for it is ignored
"""

from __future__ import annotations

import itertools
from typing import Callable

import numpy as np

from audio.capture import compute_loudness
from audio.codec import decode_audio_fragment
from audio.devices import OutputDevice
from audio.frames import PlaybackBuffer
from audio.timeline import OutputTimeline
from constants import OUTPUT_SAMPLE_RATE_HZ, SILENT_VOLUME
from observability.logger import log_event


class PlaybackScheduler:
    """Owns the output timeline and the active-buffers set for one session."""

    def __init__(
        self,
        *,
        output: OutputDevice,
        on_volume_change: Callable[[float], None],
        session_id: str | None = None,
        sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ,
    ) -> None:
        self._output = output
        self._on_volume_change = on_volume_change
        self._session_id = session_id
        self._rate = sample_rate_hz

        self._timeline = OutputTimeline(clock=lambda: self._output.current_time)
        self._active: set[PlaybackBuffer] = set()
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def timeline(self) -> OutputTimeline:
        return self._timeline

    @property
    def active_buffers(self) -> frozenset[PlaybackBuffer]:
        return frozenset(self._active)

    def __len__(self) -> int:
        return len(self._active)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def play_fragment(self, data: str | bytes) -> PlaybackBuffer:
        """
        Decode and schedule one inbound fragment.

        Raises:
            AudioDecodeError if the fragment is malformed (nothing is scheduled).
        """
        return self.schedule(decode_audio_fragment(data))

    def schedule(self, samples: np.ndarray) -> PlaybackBuffer:
        """Schedule decoded samples right after the previous buffer."""
        duration = samples.size / self._rate
        start = self._timeline.next_start()

        buffer = PlaybackBuffer(
            buffer_id=next(self._ids),
            samples=samples,
            start_time=start,
            duration=duration,
        )

        # Registered before the device sees it, so a completion can never
        # arrive for a buffer that is not yet in the set.
        self._active.add(buffer)
        try:
            buffer.handle = self._output.schedule(
                samples,
                start,
                lambda: self._on_buffer_ended(buffer),
            )
        except Exception:
            self._active.discard(buffer)
            raise

        # Only an accepted buffer moves the cursor.
        self._timeline.schedule_after(duration, start=start)
        self._on_volume_change(compute_loudness(samples))

        log_event({
            "event_type": "AUDIO_FRAGMENT_SCHEDULED",
            "session_id": self._session_id,
            "buffer_id": buffer.buffer_id,
            "start_time_s": round(start, 6),
            "duration_s": round(duration, 6),
            "active_buffers": len(self._active),
        })
        return buffer

    def flush_all(self) -> int:
        """
        Stop every active buffer, clear the set and reset the cursor to 0.

        Returns the number of buffers that were stopped.
        """
        flushed = list(self._active)
        self._active.clear()

        for buffer in flushed:
            if buffer.handle is None:
                continue
            try:
                buffer.handle.stop()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "PLAYBACK_STOP_FAILED",
                    "session_id": self._session_id,
                    "buffer_id": buffer.buffer_id,
                    "error": repr(exc),
                })

        self._timeline.reset()

        if flushed:
            self._on_volume_change(SILENT_VOLUME)

        log_event({
            "event_type": "PLAYBACK_FLUSHED",
            "session_id": self._session_id,
            "buffers_stopped": len(flushed),
        })
        return len(flushed)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _on_buffer_ended(self, buffer: PlaybackBuffer) -> None:
        if buffer not in self._active:
            return  # flushed earlier; stale completion

        self._active.discard(buffer)
        if not self._active:
            self._on_volume_change(SILENT_VOLUME)
