"""Aggregate metric source feeding the engine once per tick."""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, Optional

from ..core.models import CPU_AVERAGE, DISK, RAM, Category, Signal
from .cpu import CpuMonitor
from .disk import DiskMonitor
from .memory import MemoryMonitor

logger = logging.getLogger(__name__)

__all__ = ["SystemMonitor"]


def _clamp(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value))


class SystemMonitor:
    """
    psutil-backed :class:`~charm.core.models.MetricSource`.

    Excluded categories are not sampled at all and their signals are absent
    from :meth:`sample`, which the engine treats as "not monitored" rather
    than as zero load.
    """

    def __init__(
        self,
        exclude: Iterable[Category | str] = (),
        *,
        cpu: Optional[CpuMonitor] = None,
        memory: Optional[MemoryMonitor] = None,
        disk: Optional[DiskMonitor] = None,
    ) -> None:
        self._excluded = {Category.parse(c) for c in exclude}
        self.cpu = cpu or CpuMonitor()
        self.memory = memory or MemoryMonitor()
        self.disk = disk or DiskMonitor()

    def core_count(self) -> int:
        return self.cpu.core_count()

    def set_included(self, category: Category | str, included: bool) -> None:
        cat = Category.parse(category)
        if included:
            self._excluded.discard(cat)
        else:
            self._excluded.add(cat)

    def is_included(self, category: Category | str) -> bool:
        return Category.parse(category) not in self._excluded

    def sample(self) -> Dict[Signal, float]:
        samples: Dict[Signal, float] = {}
        if Category.CPU not in self._excluded:
            self.cpu.refresh()
            samples[CPU_AVERAGE] = _clamp(self.cpu.average())
            for index, value in enumerate(self.cpu.per_core()):
                samples[Signal.cpu_core(index)] = _clamp(value)
        if Category.RAM not in self._excluded:
            self.memory.refresh()
            samples[RAM] = _clamp(self.memory.usage())
        if Category.DISK not in self._excluded:
            self.disk.refresh()
            samples[DISK] = _clamp(self.disk.activity())
        return samples
