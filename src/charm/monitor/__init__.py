"""System metric collection (CPU, memory, disk) built on psutil."""

from .cpu import CpuMonitor
from .disk import DiskMonitor, is_physical_device
from .memory import MemoryMonitor
from .system import SystemMonitor

__all__ = ["CpuMonitor", "DiskMonitor", "MemoryMonitor", "SystemMonitor", "is_physical_device"]
