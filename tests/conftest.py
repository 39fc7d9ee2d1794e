from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import numpy as np
import pytest

from charm.audio.output import AudioOutput
from charm.audio.source import DecodedAudio
from charm.core.models import Category, SoundMode
from charm.packs.models import ChannelSounds, SoundPack

SAMPLERATE = 8_000


class FakeStream:
    """Stands in for ``sounddevice.OutputStream``."""

    instances: List["FakeStream"] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.started = False
        self.closed = False
        FakeStream.instances.append(self)

    @property
    def callback(self):
        return self.kwargs["callback"]

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True


class MemoryDecoder:
    """Decoder returning a constant-level loop per path and recording what it decoded."""

    def __init__(self, frames: int = 400, level: float = 0.5) -> None:
        self.frames = frames
        self.level = level
        self.calls: List[Path] = []
        self.missing: set[Path] = set()

    def __call__(self, path: Path, samplerate: int) -> DecodedAudio:
        from charm.core.errors import PackLoadError

        self.calls.append(Path(path))
        if Path(path) in self.missing:
            raise PackLoadError(f"Missing sound file: {path}")
        data = np.full((self.frames, 2), self.level, dtype=np.float32)
        return DecodedAudio(frames=data, samplerate=samplerate, path=Path(path))


def make_pack(
    name: str = "test",
    *,
    cpu: SoundMode = SoundMode.VOLUME,
    ram: SoundMode = SoundMode.VOLUME,
    disk: SoundMode = SoundMode.VOLUME,
    use_averages: bool = True,
    slide_interval: int = 1,
    frequency_fluctuation: bool = False,
    max_gain: float = 1.0,
    sounds: Dict[Category, ChannelSounds] | None = None,
) -> SoundPack:
    directory = Path("/packs") / name
    modes = {Category.CPU: cpu, Category.RAM: ram, Category.DISK: disk}
    resolved: Dict[Category, ChannelSounds] = {}
    for category, mode in modes.items():
        base = {Category.CPU: "CPU", Category.RAM: "RAM", Category.DISK: "disk"}[category]
        if mode is SoundMode.FADE:
            resolved[category] = ChannelSounds.pair(directory / f"{base}_A.ogg", directory / f"{base}_B.ogg")
        elif mode is SoundMode.VOLUME:
            resolved[category] = ChannelSounds.single(directory / f"{base}.ogg")
        else:
            resolved[category] = ChannelSounds.none()
    if sounds:
        resolved.update(sounds)
    return SoundPack(
        name=name,
        directory=directory,
        use_averages=use_averages,
        slide_interval=slide_interval,
        frequency_fluctuation=frequency_fluctuation,
        max_gain=max_gain,
        modes=modes,
        sounds=resolved,
    )


@pytest.fixture
def decoder() -> MemoryDecoder:
    return MemoryDecoder()


@pytest.fixture
def output() -> AudioOutput:
    FakeStream.instances.clear()
    return AudioOutput(samplerate=SAMPLERATE, blocksize=256, stream_factory=FakeStream)


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
