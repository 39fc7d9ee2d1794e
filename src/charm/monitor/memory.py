"""Memory usage as a fraction of total RAM."""

from __future__ import annotations

import psutil

__all__ = ["MemoryMonitor"]


class MemoryMonitor:
    """Used memory is ``total - available``, which excludes reclaimable caches."""

    def __init__(self) -> None:
        self._total = 0
        self._used = 0

    def refresh(self) -> None:
        vm = psutil.virtual_memory()
        self._total = int(vm.total)
        self._used = max(0, int(vm.total) - int(vm.available))

    @property
    def total_bytes(self) -> int:
        return self._total

    @property
    def used_bytes(self) -> int:
        return self._used

    def usage(self) -> float:
        if self._total <= 0:
            return 0.0
        return min(1.0, self._used / self._total)
