"""Shared identities for monitored signals, categories, and sound modes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Mapping, Optional, Protocol

__all__ = [
    "Category",
    "SoundMode",
    "SignalKind",
    "Signal",
    "CPU_AVERAGE",
    "RAM",
    "DISK",
    "Samples",
    "MetricSource",
]


class Category(str, Enum):
    """User-facing monitoring category (one toggle and one mode each)."""

    CPU = "cpu"
    RAM = "ram"
    DISK = "disk"

    @classmethod
    def parse(cls, value: "Category | str") -> "Category":
        if isinstance(value, Category):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown category {value!r}")


class SoundMode(IntEnum):
    """How a category drives its audio (matches the ``*SoundMode`` pack keys)."""

    DISABLED = 0
    VOLUME = 1
    FADE = 2

    @classmethod
    def from_int(cls, value: int) -> "SoundMode":
        """Map a pack integer to a mode; unknown values fall back to volume."""
        try:
            return cls(int(value))
        except ValueError:
            return cls.VOLUME


class SignalKind(Enum):
    CPU_AVERAGE = "cpu_average"
    CPU_CORE = "cpu_core"
    RAM = "ram"
    DISK = "disk"


_KIND_CATEGORY = {
    SignalKind.CPU_AVERAGE: Category.CPU,
    SignalKind.CPU_CORE: Category.CPU,
    SignalKind.RAM: Category.RAM,
    SignalKind.DISK: Category.DISK,
}


@dataclass(frozen=True, slots=True)
class Signal:
    """
    Identity of one monitored value.

    ``index`` is only set for :attr:`SignalKind.CPU_CORE` signals.
    """

    kind: SignalKind
    index: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind is SignalKind.CPU_CORE:
            if self.index is None or int(self.index) < 0:
                raise ValueError("CPU core signals need a non-negative index")
        elif self.index is not None:
            raise ValueError(f"{self.kind.value} signals do not take an index")

    @classmethod
    def cpu_core(cls, index: int) -> "Signal":
        return cls(SignalKind.CPU_CORE, int(index))

    @property
    def category(self) -> Category:
        return _KIND_CATEGORY[self.kind]

    def __str__(self) -> str:
        if self.kind is SignalKind.CPU_CORE:
            return f"cpu_core[{self.index}]"
        return self.kind.value


CPU_AVERAGE = Signal(SignalKind.CPU_AVERAGE)
RAM = Signal(SignalKind.RAM)
DISK = Signal(SignalKind.DISK)

Samples = Mapping[Signal, float]


class MetricSource(Protocol):
    """Anything that can produce one normalized sample per signal per tick."""

    def sample(self) -> Samples:  # pragma: no cover - protocol
        ...
