# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np
import pytest

from audio.capture import AudioCaptureTap, compute_loudness
from audio.frames import AudioFrame
from constants import INPUT_FRAME_SAMPLES, LOUDNESS_BOOST

from fakes import FakeInputDevice


def _tap(device: FakeInputDevice) -> tuple[AudioCaptureTap, list[tuple[AudioFrame, bytes]], list[float]]:
    submitted: list[tuple[AudioFrame, bytes]] = []
    volumes: list[float] = []
    tap = AudioCaptureTap(
        device=device,
        submit=lambda frame, pcm: submitted.append((frame, pcm)),
        on_volume_change=volumes.append,
    )
    return tap, submitted, volumes


def test_silent_frame_has_zero_loudness() -> None:
    device = FakeInputDevice()
    tap, submitted, volumes = _tap(device)
    tap.start()

    device.emit(np.zeros(INPUT_FRAME_SAMPLES, dtype=np.float32))

    assert volumes == [0.0]
    assert submitted[0][0].loudness == 0.0


def test_full_scale_frame_loudness_is_bounded_by_boost() -> None:
    square = np.where(np.arange(INPUT_FRAME_SAMPLES) % 2 == 0, 1.0, -1.0).astype(np.float32)

    assert compute_loudness(square) <= LOUDNESS_BOOST + 1e-9
    assert compute_loudness(square) == pytest.approx(LOUDNESS_BOOST)


def test_frames_are_encoded_and_submitted_in_order() -> None:
    device = FakeInputDevice()
    tap, submitted, _ = _tap(device)
    tap.start()

    for level in (0.1, 0.2, 0.3):
        device.emit(np.full(INPUT_FRAME_SAMPLES, level, dtype=np.float32))

    assert [f.sequence_num for f, _ in submitted] == [1, 2, 3]
    assert all(len(pcm) == INPUT_FRAME_SAMPLES * 2 for _, pcm in submitted)
    assert tap.frames_captured == 3


def test_frames_after_stop_are_discarded() -> None:
    device = FakeInputDevice()
    tap, submitted, volumes = _tap(device)
    tap.start()
    tap.stop()
    tap.stop()

    # a block that was already in flight when the tap stopped
    tap.on_frame(np.ones(INPUT_FRAME_SAMPLES, dtype=np.float32))

    assert not submitted
    assert not volumes
    assert device.stopped == 1
    assert not tap.active


def test_other_device_rates_are_resampled_to_16k() -> None:
    device = FakeInputDevice(sample_rate_hz=48000)
    tap, submitted, _ = _tap(device)
    tap.start()

    device.emit(np.zeros(INPUT_FRAME_SAMPLES * 3, dtype=np.float32))

    frame, pcm = submitted[0]
    assert frame.samples.size == INPUT_FRAME_SAMPLES
    assert len(pcm) == INPUT_FRAME_SAMPLES * 2
