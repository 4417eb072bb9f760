"""
Audio frame and playback buffer records.

Pure data containers only.
No queues, no timing logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np


@dataclass(frozen=True)
class AudioFrame:
    """
    One block of microphone audio, as delivered by the input device.

    sequence_num:
        Monotonic per-session counter. Outbound order follows it.

    samples:
        Mono float32 samples at the input rate (INPUT_FRAME_SAMPLES long
        when the device honours the requested block size).

    loudness:
        Boosted RMS of `samples`, as reported to the HUD meter.

    ts_ms:
        Wall-clock timestamp when the frame reached the event loop.
        Used for observability only.
    """
    sequence_num: int
    samples: np.ndarray
    loudness: float
    ts_ms: int


@dataclass(eq=False)
class PlaybackBuffer:
    """
    A decoded fragment scheduled on the output timeline.

    Identity-compared: membership in PlaybackScheduler's active set is the
    only lifetime signal, so two buffers with equal audio stay distinct.

    handle:
        Device-side handle returned by OutputDevice.schedule(); stop()
        silences the buffer if it has not finished.
    """
    buffer_id: int
    samples: np.ndarray
    start_time: float
    duration: float
    handle: Any = field(default=None, repr=False)

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration
