# pylint: disable=missing-module-docstring,missing-function-docstring

import base64

import numpy as np
import pytest

from audio.codec import (
    AudioDecodeError,
    decode_audio_fragment,
    float32_to_pcm16le,
    pcm16le_to_float32,
    resample,
    rms,
)


def test_float32_to_pcm16le_scales_and_clips() -> None:
    pcm = float32_to_pcm16le(np.array([1.0, -1.0, 0.0, 2.0, -3.0], dtype=np.float32))

    decoded = np.frombuffer(pcm, dtype="<i2").tolist()
    assert decoded == [32767, -32767, 0, 32767, -32767]


def test_pcm16le_to_float32_is_little_endian() -> None:
    # 0x4000 little-endian == 16384 == 0.5 of full scale
    samples = pcm16le_to_float32(b"\x00\x40")

    assert samples.dtype == np.float32
    assert samples.tolist() == [0.5]


def test_pcm16le_odd_length_is_a_decode_error() -> None:
    with pytest.raises(AudioDecodeError):
        pcm16le_to_float32(b"\x00\x40\x00")


def test_decode_audio_fragment_accepts_base64_pcm() -> None:
    data = base64.b64encode(b"\x00\x40\x00\xc0").decode("ascii")

    assert decode_audio_fragment(data).tolist() == [0.5, -0.5]


@pytest.mark.parametrize("bad", ["not base64!!", "", base64.b64encode(b"\x01").decode()])
def test_decode_audio_fragment_rejects_malformed_input(bad: str) -> None:
    with pytest.raises(AudioDecodeError):
        decode_audio_fragment(bad)


def test_decode_audio_fragment_accepts_raw_pcm_bytes() -> None:
    assert decode_audio_fragment(b"\x00\x40\x00\xc0").tolist() == [0.5, -0.5]


@pytest.mark.parametrize("bad", [123, {"data": "AAAA"}, b""])
def test_decode_audio_fragment_rejects_non_audio_payload_types(bad: object) -> None:
    with pytest.raises(AudioDecodeError):
        decode_audio_fragment(bad)  # type: ignore[arg-type]


def test_decode_error_is_a_value_error() -> None:
    assert issubclass(AudioDecodeError, ValueError)


def test_rms() -> None:
    assert rms(np.zeros(0, dtype=np.float32)) == 0.0
    assert rms(np.zeros(4096, dtype=np.float32)) == 0.0
    assert rms(np.full(4096, 0.5, dtype=np.float32)) == pytest.approx(0.5)


def test_resample_changes_length_by_rate_ratio() -> None:
    samples = np.zeros(4800, dtype=np.float32)

    out = resample(samples, 48000, 16000)

    assert out.size == 1600
    assert out.dtype == np.float32


def test_resample_same_rate_is_identity() -> None:
    samples = np.ones(10, dtype=np.float32)

    assert resample(samples, 16000, 16000) is samples
