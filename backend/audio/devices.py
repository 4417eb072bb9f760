"""
Audio device boundary.

Responsibilities:
- Define the minimal input/output device contracts the session needs
- Provide sounddevice (PortAudio) implementations of both
- Hop device-thread callbacks onto the asyncio loop

Non-responsibilities:
- No loudness, encoding or session logic (see audio.capture)
- No timeline policy (see audio.timeline / audio.playback)

sounddevice is imported lazily so the rest of the client imports and tests
without a PortAudio installation.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import numpy as np

from audio.codec import resample
from constants import (
    INPUT_CHANNELS,
    INPUT_FRAME_SAMPLES,
    INPUT_SAMPLE_RATE_HZ,
    OUTPUT_BLOCK_SAMPLES,
    OUTPUT_CHANNELS,
    OUTPUT_SAMPLE_RATE_HZ,
)
from observability.logger import log_event


FrameCallback = Callable[[np.ndarray], None]


class AudioDeviceError(RuntimeError):
    """Raised when an audio device cannot be opened (missing, denied, busy)."""


# ---------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------

class InputDevice(Protocol):
    """Microphone stream delivering fixed-size float32 blocks on the loop."""

    sample_rate_hz: int

    def start(self, on_frame: FrameCallback) -> None: ...

    def stop(self) -> None: ...

    async def close(self) -> None: ...


class PlaybackHandle(Protocol):
    def stop(self) -> None: ...


class OutputDevice(Protocol):
    """Output stream with a clock and sample-accurate buffer scheduling."""

    @property
    def current_time(self) -> float: ...

    def schedule(
        self,
        samples: np.ndarray,
        start_time: float,
        on_ended: Callable[[], None],
    ) -> PlaybackHandle: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------
# sounddevice helpers
# ---------------------------------------------------------------------

def _import_sounddevice() -> Any:
    try:
        import sounddevice as sd  # pylint: disable=import-outside-toplevel
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise AudioDeviceError("sounddevice is required for live audio.") from exc
    return sd


def _resolve_device(sd: Any, name: str | None, *, kind: str) -> int | None:
    """Map a name substring to a device index; None keeps the system default."""
    if not name:
        return None

    channels_key = "max_input_channels" if kind == "input" else "max_output_channels"
    for idx, dev in enumerate(sd.query_devices()):
        if dev.get(channels_key, 0) <= 0:
            continue
        if name.lower() in (dev.get("name") or "").lower():
            return idx

    raise AudioDeviceError(f"No {kind} device matching {name!r}")


def _supported_rate(sd: Any, device: int | None, *, kind: str, wanted: int) -> int:
    """Return `wanted` if the device accepts it, else the device's default rate."""
    check = sd.check_input_settings if kind == "input" else sd.check_output_settings
    try:
        check(device=device, samplerate=wanted, channels=1, dtype="float32")
        return wanted
    except Exception:  # pylint: disable=broad-exception-caught
        info = sd.query_devices(device, kind)
        fallback = int(info["default_samplerate"])
        log_event({
            "event_type": "AUDIO_DEVICE_RATE_FALLBACK",
            "kind": kind,
            "wanted_hz": wanted,
            "using_hz": fallback,
        })
        return fallback


# ---------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------

class SoundDeviceInput:
    """
    Microphone capture via sounddevice.InputStream.

    PortAudio calls back on its own thread; each block is copied and handed
    to the loop with call_soon_threadsafe. After stop() no block reaches the
    frame callback, even if one was already in flight.
    """

    def __init__(self, stream: Any, *, sample_rate_hz: int, loop: asyncio.AbstractEventLoop) -> None:
        self._stream = stream
        self._loop = loop
        self._on_frame: FrameCallback | None = None
        self.sample_rate_hz = sample_rate_hz

    def device_callback(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
        if status:
            log_event({"event_type": "AUDIO_INPUT_STATUS", "status": str(status)})
        if self._on_frame is None:
            return
        block = np.array(indata[:, 0], dtype=np.float32)
        self._loop.call_soon_threadsafe(self._deliver, block)

    def _deliver(self, block: np.ndarray) -> None:
        on_frame = self._on_frame
        if on_frame is not None:
            on_frame(block)

    def start(self, on_frame: FrameCallback) -> None:
        self._on_frame = on_frame
        self._stream.start()

    def stop(self) -> None:
        self._on_frame = None
        self._stream.stop()

    async def close(self) -> None:
        self._on_frame = None
        await asyncio.to_thread(self._stream.close)


async def open_input_device(name: str | None = None) -> SoundDeviceInput:
    """
    Open (but do not start) the microphone.

    Raises:
        AudioDeviceError when PortAudio is missing, the device is unknown,
        or the OS refuses access.
    """
    sd = _import_sounddevice()
    loop = asyncio.get_running_loop()

    def _open() -> SoundDeviceInput:
        device = _resolve_device(sd, name, kind="input")
        rate = _supported_rate(sd, device, kind="input", wanted=INPUT_SAMPLE_RATE_HZ)
        # Keep the frame period constant when the device runs at another rate
        blocksize = round(INPUT_FRAME_SAMPLES * rate / INPUT_SAMPLE_RATE_HZ)

        holder: dict[str, SoundDeviceInput] = {}

        def _callback(indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
            holder["input"].device_callback(indata, frames, time_info, status)

        stream = sd.InputStream(
            samplerate=rate,
            channels=INPUT_CHANNELS,
            dtype="float32",
            blocksize=blocksize,
            device=device,
            callback=_callback,
        )
        holder["input"] = SoundDeviceInput(stream, sample_rate_hz=rate, loop=loop)
        return holder["input"]

    try:
        return await asyncio.to_thread(_open)
    except AudioDeviceError:
        raise
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise AudioDeviceError(f"microphone unavailable: {exc}") from exc


# ---------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------

@dataclass(eq=False)
class _Voice:
    start_frame: int
    samples: np.ndarray
    on_ended: Callable[[], None]
    pos: int = 0
    stopped: bool = False
    owner: SoundDeviceOutput | None = field(default=None, repr=False)

    def stop(self) -> None:
        if self.owner is not None:
            self.owner.stop_voice(self)


class SoundDeviceOutput:
    """
    Sample-accurate mixer over sounddevice.OutputStream.

    The device clock is the number of frames rendered so far divided by the
    stream rate. Each scheduled buffer starts at round(start_time * rate) on
    that clock; buffers scheduled in the past start immediately.
    """

    def __init__(self, stream: Any, *, sample_rate_hz: int, loop: asyncio.AbstractEventLoop) -> None:
        self._stream = stream
        self._loop = loop
        self._rate = sample_rate_hz
        self._lock = threading.Lock()
        self._voices: list[_Voice] = []
        self._frames_rendered: int = 0
        self._closed = False

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self._rate

    def schedule(
        self,
        samples: np.ndarray,
        start_time: float,
        on_ended: Callable[[], None],
    ) -> _Voice:
        if self._rate != OUTPUT_SAMPLE_RATE_HZ:
            samples = resample(samples, OUTPUT_SAMPLE_RATE_HZ, self._rate)

        voice = _Voice(
            start_frame=round(start_time * self._rate),
            samples=samples,
            on_ended=on_ended,
            owner=self,
        )
        with self._lock:
            self._voices.append(voice)
        return voice

    def stop_voice(self, voice: _Voice) -> None:
        with self._lock:
            voice.stopped = True
            if voice in self._voices:
                self._voices.remove(voice)

    def device_callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
        mix = np.zeros(frames, dtype=np.float32)
        finished: list[_Voice] = []

        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames

            for voice in self._voices:
                next_frame = voice.start_frame + voice.pos
                if next_frame >= block_end:
                    continue
                offset = max(0, next_frame - block_start)
                n = min(frames - offset, voice.samples.size - voice.pos)
                mix[offset:offset + n] += voice.samples[voice.pos:voice.pos + n]
                voice.pos += n
                if voice.pos >= voice.samples.size:
                    finished.append(voice)

            if finished:
                self._voices = [v for v in self._voices if v not in finished]
            self._frames_rendered = block_end

        outdata[:, 0] = np.clip(mix, -1.0, 1.0)

        if self._closed:
            return
        for voice in finished:
            self._loop.call_soon_threadsafe(voice.on_ended)

    async def close(self) -> None:
        self._closed = True
        with self._lock:
            self._voices.clear()
        await asyncio.to_thread(self._close_stream)

    def _close_stream(self) -> None:
        self._stream.stop()
        self._stream.close()


async def open_output_device(name: str | None = None) -> SoundDeviceOutput:
    """
    Open and start the speaker stream (silent until something is scheduled).

    Raises:
        AudioDeviceError when PortAudio is missing or the device is unusable.
    """
    sd = _import_sounddevice()
    loop = asyncio.get_running_loop()

    def _open() -> SoundDeviceOutput:
        device = _resolve_device(sd, name, kind="output")
        rate = _supported_rate(sd, device, kind="output", wanted=OUTPUT_SAMPLE_RATE_HZ)

        holder: dict[str, SoundDeviceOutput] = {}

        def _callback(outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
            holder["output"].device_callback(outdata, frames, time_info, status)

        stream = sd.OutputStream(
            samplerate=rate,
            channels=OUTPUT_CHANNELS,
            dtype="float32",
            blocksize=OUTPUT_BLOCK_SAMPLES,
            device=device,
            callback=_callback,
        )
        holder["output"] = SoundDeviceOutput(stream, sample_rate_hz=rate, loop=loop)
        stream.start()
        return holder["output"]

    try:
        return await asyncio.to_thread(_open)
    except AudioDeviceError:
        raise
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise AudioDeviceError(f"speaker unavailable: {exc}") from exc
