"""
Granular pitch shifter used for frequency fluctuation.

Two overlapping grains read from a short circular delay line at ``ratio``
times the write speed. Each grain is shaped by a Hann window and the pair is
offset by half a grain, so the windows sum to a constant and the grain
restarts are inaudible. The output lags the input by one grain.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

__all__ = ["GranularPitchShifter", "fluctuation_ratio", "MIN_RATIO", "MAX_RATIO"]

DEFAULT_GRAIN_MS = 25.0
MIN_RATIO = 0.25
MAX_RATIO = 4.0

# Ratios closer than this to 1.0 bypass the grains and read the delay line directly.
_PASSTHROUGH_EPSILON = 1e-3


def fluctuation_ratio(value: float) -> float:
    """Map a smoothed metric value in ``[0, 1]`` to a pitch ratio in ``[0.8, 1.2]``."""
    return 0.8 + 0.4 * float(value)


@dataclass(slots=True)
class _Grain:
    read_pos: float
    count: int


class GranularPitchShifter:
    """
    Stereo pitch shifter processing whole blocks with numpy.

    Parameters
    ----------
    samplerate:
        Sample rate of the audio fed to :meth:`process`.
    grain_ms:
        Grain length; the delay line holds four grains.
    """

    def __init__(self, samplerate: int, grain_ms: float = DEFAULT_GRAIN_MS, channels: int = 2) -> None:
        grain = int(samplerate * grain_ms / 1000.0)
        if grain < 2:
            raise ValueError("grain must span at least two samples")
        self._grain = grain
        self._delay = grain
        self._size = grain * 4
        self._channels = int(channels)
        self._buffer = np.zeros((self._size, self._channels), dtype=np.float32)
        self._ratio = 1.0
        self.reset()

    @property
    def ratio(self) -> float:
        return self._ratio

    @property
    def grain_size(self) -> int:
        return self._grain

    @property
    def latency(self) -> int:
        """Frames of silence emitted after construction or :meth:`reset`."""
        return self._delay + self._grain

    def set_ratio(self, ratio: float) -> None:
        value = float(ratio)
        if not math.isfinite(value):
            raise ValueError(f"pitch ratio must be finite, got {ratio!r}")
        self._ratio = min(MAX_RATIO, max(MIN_RATIO, value))

    def reset(self) -> None:
        self._buffer.fill(0.0)
        self._write_pos = self._delay
        self._warmup_left = self._delay + self._grain
        self._grains = (_Grain(0.0, 0), _Grain(0.0, self._grain // 2))

    def process(self, block: np.ndarray) -> np.ndarray:
        """Return the pitch-shifted copy of ``block`` (shape ``(n, channels)``)."""
        data = np.asarray(block, dtype=np.float32)
        n = data.shape[0]
        out = np.zeros_like(data)
        passthrough = abs(self._ratio - 1.0) < _PASSTHROUGH_EPSILON
        pos = 0
        while pos < n:
            if self._warmup_left > 0:
                length = min(n - pos, self._warmup_left)
                self._write(data[pos : pos + length])
                self._warmup_left -= length
            elif passthrough:
                length = min(n - pos, self._grain)
                out[pos : pos + length] = self._passthrough(data[pos : pos + length])
            else:
                length = min(n - pos, self._grain - max(g.count for g in self._grains))
                out[pos : pos + length] = self._granulate(data[pos : pos + length])
            pos += length
        return out

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _write(self, chunk: np.ndarray) -> tuple[int, np.ndarray]:
        """Write ``chunk`` into the delay line; return its start and the overwritten frames."""
        start = self._write_pos
        idx = (start + np.arange(chunk.shape[0])) % self._size
        previous = self._buffer[idx].copy()
        self._buffer[idx] = chunk
        self._write_pos = (start + chunk.shape[0]) % self._size
        return start, previous

    def _pick(self, idx: np.ndarray, k: np.ndarray, start: int, previous: np.ndarray) -> np.ndarray:
        # Frame k must not see samples this chunk wrote after it.
        values = self._buffer[idx]
        written_at = (idx - start) % self._size
        stale = (written_at < previous.shape[0]) & (written_at > k)
        if stale.any():
            values[stale] = previous[written_at[stale]]
        return values

    def _read(self, positions: np.ndarray, k: np.ndarray, start: int, previous: np.ndarray) -> np.ndarray:
        wrapped = np.mod(positions, self._size)
        i0 = wrapped.astype(np.int64)
        frac = (wrapped - i0).astype(np.float32)[:, None]
        i1 = (i0 + 1) % self._size
        s0 = self._pick(i0, k, start, previous)
        s1 = self._pick(i1, k, start, previous)
        return s0 + (s1 - s0) * frac

    def _passthrough(self, chunk: np.ndarray) -> np.ndarray:
        start, previous = self._write(chunk)
        k = np.arange(chunk.shape[0])
        idx = (start + k + 1 - self._delay) % self._size
        return self._pick(idx, k, start, previous)

    def _granulate(self, chunk: np.ndarray) -> np.ndarray:
        length = chunk.shape[0]
        start, previous = self._write(chunk)
        k = np.arange(length)
        out = np.zeros((length, self._channels), dtype=np.float32)
        for grain in self._grains:
            phase = (grain.count + k) / self._grain
            fade = (0.5 * (1.0 - np.cos(2.0 * np.pi * phase))).astype(np.float32)
            positions = grain.read_pos + self._ratio * k
            out += self._read(positions, k, start, previous) * fade[:, None]
            grain.count += length
            grain.read_pos = (grain.read_pos + self._ratio * length) % self._size
            if grain.count >= self._grain:
                grain.count = 0
                grain.read_pos = float((self._write_pos - self._delay) % self._size)
        return out
