"""CPU load per logical core and averaged, normalised to ``[0, 1]``."""

from __future__ import annotations

import logging
from typing import List

import psutil

logger = logging.getLogger(__name__)

__all__ = ["CpuMonitor"]


def _fraction(percent: float) -> float:
    return min(1.0, max(0.0, float(percent) / 100.0))


class CpuMonitor:
    """
    Wraps ``psutil.cpu_percent(percpu=True)``.

    psutil measures load since the previous call, so the constructor primes
    it once and each :meth:`refresh` reports the load over the last tick.
    """

    def __init__(self) -> None:
        self._core_count = psutil.cpu_count(logical=True) or 1
        psutil.cpu_percent(interval=None, percpu=True)
        self._cores: List[float] = [0.0] * self._core_count

    def core_count(self) -> int:
        return self._core_count

    def refresh(self) -> None:
        values = psutil.cpu_percent(interval=None, percpu=True)
        self._cores = [_fraction(v) for v in values]

    def per_core(self) -> List[float]:
        return list(self._cores)

    def average(self) -> float:
        if not self._cores:
            return 0.0
        return sum(self._cores) / len(self._cores)
