"""
PCM conversion utilities.

Pure transforms, no state:
- float32 samples <-> PCM16 little-endian bytes
- inbound fragment (base64 text or raw bytes) -> float32 samples
- RMS loudness
- polyphase resampling for devices that cannot run at the wire rate
"""

from __future__ import annotations

import base64
import binascii
from math import gcd

import numpy as np
from scipy import signal

from constants import PCM_FULL_SCALE, PCM_SAMPLE_WIDTH_BYTES


class AudioDecodeError(ValueError):
    """
    Raised when an inbound audio fragment cannot be turned into samples.

    The fragment is unsafe to schedule and must be dropped.
    """


def float32_to_pcm16le(samples: np.ndarray) -> bytes:
    """
    Convert float samples in [-1.0, 1.0] to PCM16 little-endian mono bytes.

    Out-of-range samples are clipped rather than wrapped.
    """
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.round(clipped * (PCM_FULL_SCALE - 1.0))
    return scaled.astype("<i2").tobytes()


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % PCM_SAMPLE_WIDTH_BYTES != 0:
        raise AudioDecodeError(
            f"PCM16 payload has odd length {len(pcm_bytes)} (truncated sample)"
        )

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")
    return audio_i16.astype(np.float32) / PCM_FULL_SCALE


def decode_audio_fragment(data: str | bytes) -> np.ndarray:
    """
    Turn one inbound fragment into playable float32 samples.

    `data` is either base64 text (JSON wire form) or the raw PCM16LE bytes
    the live SDK hands back after decoding inlineData itself.

    Raises:
        AudioDecodeError for invalid base64, non-audio payload types, odd
        byte counts or empty audio.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        raw = bytes(data)
    else:
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise AudioDecodeError(f"invalid base64 audio: {e!r}") from e

    samples = pcm16le_to_float32(raw)
    if samples.size == 0:
        raise AudioDecodeError("empty audio fragment")
    return samples


def rms(samples: np.ndarray) -> float:
    """Root-mean-square level of a block; 0.0 for an empty block."""
    if samples.size == 0:
        return 0.0
    block = samples.astype(np.float64, copy=False)
    return float(np.sqrt(np.mean(np.square(block))))


def resample(samples: np.ndarray, src_rate_hz: int, dst_rate_hz: int) -> np.ndarray:
    """
    Resample mono float32 audio with a polyphase filter.

    Returns the input unchanged when the rates match.
    """
    if src_rate_hz == dst_rate_hz:
        return samples

    divisor = gcd(src_rate_hz, dst_rate_hz)
    up = dst_rate_hz // divisor
    down = src_rate_hz // divisor
    out = signal.resample_poly(samples, up, down)
    return out.astype(np.float32)
