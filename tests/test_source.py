from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from charm.audio.source import DecodedAudio, decode_asset, to_stereo
from charm.core.errors import PackLoadError


def _write(path: Path, data: np.ndarray, samplerate: int) -> Path:
    sf.write(str(path), data, samplerate, subtype="FLOAT")
    return path


def test_mono_asset_is_duplicated_to_stereo(tmp_path: Path) -> None:
    mono = np.linspace(-0.5, 0.5, 500, dtype=np.float32)
    path = _write(tmp_path / "CPU.wav", mono, 8000)

    audio = decode_asset(path, 8000)

    assert audio.frames.shape == (500, 2)
    assert audio.frames.dtype == np.float32
    np.testing.assert_allclose(audio.frames[:, 0], mono, atol=1e-6)
    np.testing.assert_array_equal(audio.frames[:, 0], audio.frames[:, 1])
    assert audio.path == path


def test_asset_is_resampled_to_output_rate(tmp_path: Path) -> None:
    stereo = np.zeros((1000, 2), dtype=np.float32)
    path = _write(tmp_path / "RAM.wav", stereo, 22050)

    audio = decode_asset(path, 44100)

    assert audio.samplerate == 44100
    assert audio.frames.shape == (2000, 2)
    assert audio.duration_s == pytest.approx(1000 / 22050)


def test_missing_asset_raises_pack_load_error(tmp_path: Path) -> None:
    with pytest.raises(PackLoadError, match="Missing sound file"):
        decode_asset(tmp_path / "disk.ogg", 48000)


def test_corrupt_asset_raises_pack_load_error(tmp_path: Path) -> None:
    path = tmp_path / "disk.wav"
    path.write_bytes(b"this is not audio at all")
    with pytest.raises(PackLoadError, match="Cannot decode"):
        decode_asset(path, 48000)


def test_extra_channels_are_dropped() -> None:
    data = np.arange(12, dtype=np.float32).reshape(4, 3)
    np.testing.assert_array_equal(to_stereo(data), data[:, :2])


def test_decoded_audio_rejects_empty_frames() -> None:
    with pytest.raises(ValueError):
        DecodedAudio(frames=np.zeros((0, 2), dtype=np.float32), samplerate=48000)
