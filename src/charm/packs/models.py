"""Resolved, read-only sound pack configuration consumed by the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from ..core.models import Category, SoundMode

__all__ = ["ChannelSounds", "SoundPack", "DEFAULT_SLIDE_INTERVAL"]

DEFAULT_SLIDE_INTERVAL = 20

_LABELS = {Category.CPU: "CPU", Category.RAM: "RAM", Category.DISK: "Disk"}


@dataclass(frozen=True, slots=True)
class ChannelSounds:
    """
    Asset paths for one category.

    Volume mode plays ``primary``. Fade mode crossfades ``primary`` (idle, the
    ``_A`` file) into ``secondary`` (active, the ``_B`` file).
    """

    primary: Optional[Path] = None
    secondary: Optional[Path] = None

    @classmethod
    def none(cls) -> "ChannelSounds":
        return cls()

    @classmethod
    def single(cls, path: Path) -> "ChannelSounds":
        return cls(primary=Path(path))

    @classmethod
    def pair(cls, idle: Path, active: Path) -> "ChannelSounds":
        return cls(primary=Path(idle), secondary=Path(active))

    @property
    def has_sounds(self) -> bool:
        return self.primary is not None

    @property
    def is_pair(self) -> bool:
        return self.primary is not None and self.secondary is not None


@dataclass(frozen=True, slots=True)
class SoundPack:
    name: str
    directory: Path
    use_averages: bool = False
    slide_interval: int = DEFAULT_SLIDE_INTERVAL
    frequency_fluctuation: bool = False
    max_gain: float = 1.0
    modes: Mapping[Category, SoundMode] = field(default_factory=dict)
    sounds: Mapping[Category, ChannelSounds] = field(default_factory=dict)

    def mode(self, category: Category) -> SoundMode:
        return self.modes.get(Category.parse(category), SoundMode.DISABLED)

    def sounds_for(self, category: Category) -> ChannelSounds:
        return self.sounds.get(Category.parse(category), ChannelSounds.none())

    def active_categories(self) -> list[Category]:
        return [c for c in Category if self.mode(c) is not SoundMode.DISABLED]

    def description(self) -> str:
        """Short summary such as ``"Per-core CPU | Monitors: CPU, RAM"``."""
        parts = ["Averaged CPU" if self.use_averages else "Per-core CPU"]
        monitored = [_LABELS[c] for c in self.active_categories()]
        if monitored:
            parts.append("Monitors: " + ", ".join(monitored))
        return " | ".join(parts)

    def __str__(self) -> str:
        return self.name
