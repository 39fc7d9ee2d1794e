"""
Asset decoding for sound packs.

Assets are decoded once, up front, into float32 stereo arrays at the output
sample rate. Everything downstream (decode stages, pitch nodes, the mixer)
works on these in-memory loops, so no file I/O happens on the audio thread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from math import gcd
from pathlib import Path
from typing import Callable

import numpy as np
import soundfile as sf
from scipy import signal as scipy_signal

from ..core.errors import PackLoadError

logger = logging.getLogger(__name__)

__all__ = ["DecodedAudio", "AssetDecoder", "decode_asset", "to_stereo", "resample"]

OUTPUT_CHANNELS = 2


@dataclass(slots=True)
class DecodedAudio:
    """A fully decoded, loop-ready asset."""

    frames: np.ndarray  # shape (n, 2), float32
    samplerate: int
    path: Path | None = None

    def __post_init__(self) -> None:
        data = np.asarray(self.frames, dtype=np.float32)
        if data.ndim != 2 or data.shape[1] != OUTPUT_CHANNELS:
            raise ValueError(f"decoded audio must have shape (n, 2), got {data.shape}")
        if data.shape[0] == 0:
            raise ValueError("decoded audio is empty")
        self.frames = data

    def __len__(self) -> int:
        return int(self.frames.shape[0])

    @property
    def duration_s(self) -> float:
        return len(self) / float(self.samplerate)


AssetDecoder = Callable[[Path, int], DecodedAudio]


def to_stereo(data: np.ndarray) -> np.ndarray:
    """Return ``data`` as an ``(n, 2)`` array (mono is duplicated, extra channels dropped)."""
    arr = np.asarray(data, dtype=np.float32)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.shape[1] == 1:
        return np.repeat(arr, OUTPUT_CHANNELS, axis=1)
    return np.ascontiguousarray(arr[:, :OUTPUT_CHANNELS])


def resample(data: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Polyphase resampling along the frame axis."""
    if source_rate == target_rate:
        return data
    if source_rate <= 0 or target_rate <= 0:
        raise ValueError("sample rates must be positive")
    g = gcd(int(source_rate), int(target_rate))
    up = int(target_rate) // g
    down = int(source_rate) // g
    out = scipy_signal.resample_poly(data, up, down, axis=0)
    return out.astype(np.float32, copy=False)


def decode_asset(path: Path, samplerate: int) -> DecodedAudio:
    """
    Decode ``path`` into a :class:`DecodedAudio` at ``samplerate``.

    Raises
    ------
    PackLoadError
        If the file is missing, unreadable, or contains no audio.
    """
    asset = Path(path)
    if not asset.is_file():
        raise PackLoadError(f"Missing sound file: {asset}")
    try:
        data, rate = sf.read(str(asset), dtype="float32", always_2d=True)
    except (RuntimeError, OSError) as exc:
        raise PackLoadError(f"Cannot decode {asset}: {exc}") from exc

    if data.size == 0:
        raise PackLoadError(f"Sound file contains no audio: {asset}")

    stereo = to_stereo(data)
    if int(rate) != int(samplerate):
        logger.debug("Resampling %s from %d Hz to %d Hz", asset.name, rate, samplerate)
        stereo = resample(stereo, int(rate), int(samplerate))
    logger.debug("Decoded %s: %d frames @ %d Hz", asset.name, stereo.shape[0], samplerate)
    return DecodedAudio(frames=stereo, samplerate=int(samplerate), path=asset)
