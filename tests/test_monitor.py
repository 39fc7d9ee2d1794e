from __future__ import annotations

from types import SimpleNamespace
from typing import Dict

import psutil
import pytest

from charm.core.models import CPU_AVERAGE, DISK, RAM, Category, Signal
from charm.monitor import CpuMonitor, DiskMonitor, MemoryMonitor, SystemMonitor, is_physical_device
from charm.monitor.disk import MIN_MAX_BYTES_PER_S, read_disk_bytes


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _counter(read: int, write: int = 0) -> SimpleNamespace:
    return SimpleNamespace(read_bytes=read, write_bytes=write)


@pytest.mark.parametrize(
    "name, physical",
    [
        ("sda", True),
        ("sda1", False),
        ("vdb", True),
        ("nvme0n1", True),
        ("nvme0n1p2", False),
        ("mmcblk0", True),
        ("mmcblk0p1", False),
        ("loop3", False),
        ("ram0", False),
        ("dm-0", False),
    ],
)
def test_is_physical_device(name: str, physical: bool) -> None:
    assert is_physical_device(name) is physical


def test_read_disk_bytes_skips_partitions() -> None:
    counters = {"sda": _counter(100, 50), "sda1": _counter(90, 40), "loop0": _counter(7)}
    assert read_disk_bytes(counters) == 150


def test_read_disk_bytes_falls_back_to_every_device() -> None:
    counters = {"PhysicalDrive0": _counter(10, 5), "PhysicalDrive1": _counter(1)}
    assert read_disk_bytes(counters) == 16


def _patch_disk(monkeypatch: pytest.MonkeyPatch, state: Dict[str, int]) -> None:
    monkeypatch.setattr(
        psutil,
        "disk_io_counters",
        lambda perdisk=False: {"sda": _counter(state["bytes"])},
    )


def test_disk_activity_is_relative_to_adaptive_maximum(monkeypatch: pytest.MonkeyPatch) -> None:
    state = {"bytes": 0}
    _patch_disk(monkeypatch, state)
    clock = FakeClock()
    monitor = DiskMonitor(clock=clock)

    clock.now, state["bytes"] = 1.0, 256_000
    monitor.refresh()
    assert monitor.rate_bytes_per_s == pytest.approx(256_000)
    assert monitor.activity() == pytest.approx(0.5)

    clock.now, state["bytes"] = 2.0, 256_000 + 2_048_000
    monitor.refresh()
    assert monitor.max_rate == pytest.approx(2_048_000)
    assert monitor.activity() == pytest.approx(1.0)

    clock.now = 3.0
    monitor.refresh()
    assert monitor.activity() == 0.0
    assert monitor.max_rate == pytest.approx(2_048_000 * 0.999)


def test_disk_maximum_never_decays_below_floor(monkeypatch: pytest.MonkeyPatch) -> None:
    state = {"bytes": 0}
    _patch_disk(monkeypatch, state)
    clock = FakeClock()
    monitor = DiskMonitor(clock=clock)
    for tick in range(1, 50):
        clock.now = float(tick)
        monitor.refresh()
    assert monitor.max_rate == MIN_MAX_BYTES_PER_S


def test_disk_counter_reset_is_not_negative(monkeypatch: pytest.MonkeyPatch) -> None:
    state = {"bytes": 10_000_000}
    _patch_disk(monkeypatch, state)
    clock = FakeClock()
    monitor = DiskMonitor(clock=clock)
    clock.now, state["bytes"] = 1.0, 0
    monitor.refresh()
    assert monitor.activity() == 0.0


def test_memory_usage_excludes_available(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(total=1000, available=250))
    monitor = MemoryMonitor()
    assert monitor.usage() == 0.0
    monitor.refresh()
    assert monitor.used_bytes == 750
    assert monitor.usage() == pytest.approx(0.75)


def test_cpu_monitor_normalises_percentages(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(psutil, "cpu_count", lambda logical=True: 2)
    monkeypatch.setattr(psutil, "cpu_percent", lambda interval=None, percpu=False: [50.0, 100.0])
    monitor = CpuMonitor()
    assert monitor.core_count() == 2
    assert monitor.per_core() == [0.0, 0.0]
    monitor.refresh()
    assert monitor.per_core() == [0.5, 1.0]
    assert monitor.average() == pytest.approx(0.75)


class _Fixed:
    def __init__(self, **values) -> None:
        self.refreshed = 0
        self.__dict__.update(values)

    def refresh(self) -> None:
        self.refreshed += 1


def _system(exclude=()) -> SystemMonitor:
    cpu = _Fixed(core_count=lambda: 2, average=lambda: 0.4, per_core=lambda: [0.3, 1.5])
    memory = _Fixed(usage=lambda: 0.6)
    disk = _Fixed(activity=lambda: float("nan"))
    return SystemMonitor(exclude, cpu=cpu, memory=memory, disk=disk)  # type: ignore[arg-type]


def test_system_monitor_samples_every_signal() -> None:
    samples = _system().sample()
    assert samples[CPU_AVERAGE] == pytest.approx(0.4)
    assert samples[Signal.cpu_core(0)] == pytest.approx(0.3)
    assert samples[Signal.cpu_core(1)] == 1.0
    assert samples[RAM] == pytest.approx(0.6)
    assert samples[DISK] == 0.0


def test_excluded_categories_are_absent_and_not_refreshed() -> None:
    monitor = _system(exclude=("disk",))
    samples = monitor.sample()
    assert DISK not in samples
    assert monitor.disk.refreshed == 0
    assert not monitor.is_included(Category.DISK)

    monitor.set_included("disk", True)
    monitor.set_included(Category.CPU, False)
    samples = monitor.sample()
    assert DISK in samples
    assert CPU_AVERAGE not in samples
    assert Signal.cpu_core(0) not in samples
    assert monitor.core_count() == 2
