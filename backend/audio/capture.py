"""
Microphone capture tap.

Responsibilities:
- Receive each fixed-size microphone block from the input device
- Report boosted RMS loudness for the HUD meter
- Encode the block to PCM16LE and hand it to the outbound channel

Non-responsibilities:
- Opening or closing the device (SessionConnector owns device handles)
- Network sends (the connector's sender task does that)

The frame callback never blocks and never drops a frame: encoding is
cheap relative to the 256 ms frame period, and submission is a
non-blocking enqueue.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from audio.codec import float32_to_pcm16le, resample, rms
from audio.devices import InputDevice
from audio.frames import AudioFrame
from constants import INPUT_SAMPLE_RATE_HZ, LOUDNESS_BOOST
from observability.logger import log_event, now_ms


SubmitFrame = Callable[[AudioFrame, bytes], None]
VolumeSink = Callable[[float], None]


def compute_loudness(samples: np.ndarray, boost: float = LOUDNESS_BOOST) -> float:
    """Boosted RMS; exactly 0.0 for silence, at most `boost` for full scale."""
    return rms(samples) * boost


class AudioCaptureTap:
    """
    Processing node between the microphone and the session.

    Lifecycle: start() attaches to the device, stop() detaches. A block
    that was already queued on the loop when stop() ran is discarded.
    """

    def __init__(
        self,
        *,
        device: InputDevice,
        submit: SubmitFrame,
        on_volume_change: VolumeSink,
        session_id: str | None = None,
    ) -> None:
        self._device = device
        self._submit = submit
        self._on_volume_change = on_volume_change
        self._session_id = session_id

        self._active = False
        self._next_seq = 1

    @property
    def active(self) -> bool:
        return self._active

    @property
    def frames_captured(self) -> int:
        return self._next_seq - 1

    def start(self) -> None:
        if self._active:
            return
        self._active = True
        self._device.start(self.on_frame)
        log_event({
            "event_type": "CAPTURE_STARTED",
            "session_id": self._session_id,
            "device_rate_hz": self._device.sample_rate_hz,
        })

    def stop(self) -> None:
        """Detach from the device. Safe to call repeatedly."""
        if not self._active:
            return
        self._active = False
        self._device.stop()
        log_event({
            "event_type": "CAPTURE_STOPPED",
            "session_id": self._session_id,
            "frames_captured": self.frames_captured,
        })

    def on_frame(self, samples: np.ndarray) -> None:
        """Device frame callback (runs on the event loop thread)."""
        if not self._active:
            return

        loudness = compute_loudness(samples)
        self._on_volume_change(loudness)

        if self._device.sample_rate_hz != INPUT_SAMPLE_RATE_HZ:
            samples = resample(samples, self._device.sample_rate_hz, INPUT_SAMPLE_RATE_HZ)

        frame = AudioFrame(
            sequence_num=self._next_seq,
            samples=samples,
            loudness=loudness,
            ts_ms=now_ms(),
        )
        self._next_seq += 1

        self._submit(frame, float32_to_pcm16le(samples))
