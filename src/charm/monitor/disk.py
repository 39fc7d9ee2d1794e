"""
Disk activity normalised against an adaptive maximum.

Throughput is the sum of bytes read and written per second across whole
physical devices. The running maximum jumps up to any new peak and decays
slowly otherwise, so the value stays meaningful on both idle laptops and busy
servers.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Mapping

import psutil

logger = logging.getLogger(__name__)

__all__ = ["DiskMonitor", "is_physical_device", "read_disk_bytes"]

# 1000 sectors/s of 512 bytes
MIN_MAX_BYTES_PER_S = 512_000.0
MAX_DECAY = 0.999

_VIRTUAL_PREFIXES = ("loop", "ram", "dm-")
_NVME_PARTITION = re.compile(r"^nvme\d+n\d+p\d+$")
_MMC_PARTITION = re.compile(r"^mmcblk\d+p\d+$")


def is_physical_device(name: str) -> bool:
    """``True`` for whole disks (``sda``, ``nvme0n1``, ``mmcblk0``), ``False`` for partitions and virtual devices."""
    if name.startswith(_VIRTUAL_PREFIXES):
        return False
    if name.startswith("nvme"):
        return _NVME_PARTITION.match(name) is None
    if name.startswith("mmcblk"):
        return _MMC_PARTITION.match(name) is None
    return name[-1:].isalpha()


def read_disk_bytes(counters: Mapping[str, object] | None = None) -> int:
    """
    Total bytes read plus written since boot over physical devices.

    Falls back to every reported device when none of the names follow the
    Linux block-device conventions.
    """
    if counters is None:
        counters = psutil.disk_io_counters(perdisk=True) or {}
    physical = {name: c for name, c in counters.items() if is_physical_device(name)}
    selected = physical or counters
    return sum(int(c.read_bytes) + int(c.write_bytes) for c in selected.values())  # type: ignore[attr-defined]


class DiskMonitor:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._last_bytes = read_disk_bytes()
        self._last_time = clock()
        self._rate = 0.0
        self._max_rate = MIN_MAX_BYTES_PER_S

    @property
    def rate_bytes_per_s(self) -> float:
        return self._rate

    @property
    def max_rate(self) -> float:
        return self._max_rate

    def refresh(self) -> None:
        total = read_disk_bytes()
        now = self._clock()
        elapsed = now - self._last_time
        if elapsed > 0.0:
            delta = max(0, total - self._last_bytes)
            self._rate = delta / elapsed
            if self._rate > self._max_rate:
                self._max_rate = self._rate
            else:
                self._max_rate = max(self._max_rate * MAX_DECAY, MIN_MAX_BYTES_PER_S)
        self._last_bytes = total
        self._last_time = now

    def activity(self) -> float:
        return min(1.0, self._rate / self._max_rate)
