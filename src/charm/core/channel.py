"""Per-signal smoothing state that turns raw samples into audio control values."""

from __future__ import annotations

import math

from .errors import InvalidSample
from .models import Signal, SoundMode

__all__ = ["Channel"]

# Relative slack used when deciding whether the last step lands on target.
_SNAP_TOLERANCE = 1e-9


class Channel:
    """
    Smooth one monitored signal toward its latest sample.

    ``slide_interval`` is the number of ticks a static target takes to reach
    ``current``. The step size is derived from the distance at the moment the
    target changes, so a step never overshoots and convergence is bounded.
    ``slide_interval == 0`` disables smoothing entirely.
    """

    __slots__ = ("signal", "mode", "slide_interval", "_current", "_target", "_step_size")

    def __init__(self, signal: Signal, mode: SoundMode, slide_interval: int) -> None:
        interval = int(slide_interval)
        if interval < 0:
            raise ValueError(f"slide_interval must be >= 0, got {slide_interval!r}")
        self.signal = signal
        self.mode = SoundMode(mode)
        self.slide_interval = interval
        self._current = 0.0
        self._target = 0.0
        self._step_size = 0.0

    @property
    def current(self) -> float:
        return self._current

    @property
    def target(self) -> float:
        return self._target

    def set_target(self, value: float) -> None:
        """Store ``value`` as the new target; raise :class:`InvalidSample` if out of range."""
        try:
            v = float(value)
        except (TypeError, ValueError):
            raise InvalidSample(value, self.signal) from None
        if not math.isfinite(v) or v < 0.0 or v > 1.0:
            raise InvalidSample(value, self.signal)
        if v != self._target:
            self._target = v
            if self.slide_interval > 0:
                self._step_size = abs(v - self._current) / self.slide_interval

    def step(self) -> float:
        """Advance ``current`` one tick toward ``target`` and return it."""
        remaining = self._target - self._current
        if remaining == 0.0:
            return self._current
        if self.slide_interval == 0:
            self._current = self._target
            return self._current
        if abs(remaining) <= self._step_size * (1.0 + _SNAP_TOLERANCE):
            self._current = self._target
        else:
            self._current += math.copysign(self._step_size, remaining)
        return self._current

    def reset(self) -> None:
        self._current = 0.0
        self._target = 0.0
        self._step_size = 0.0

    def __repr__(self) -> str:
        return (
            f"Channel({self.signal}, mode={self.mode.name}, slide_interval={self.slide_interval}, "
            f"current={self._current:.3f}, target={self._target:.3f})"
        )
