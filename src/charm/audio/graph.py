"""
Playable audio topologies, one per channel group.

Every graph is a small arena of typed nodes (decode stages, pitch, gain, pan)
owned by one :class:`SoundGraph`. The engine drives a graph through
``apply(value)`` on the tick thread while :class:`~charm.audio.output.AudioOutput`
pulls blocks through ``render(frames)`` on the audio thread; a per-graph lock
keeps the two (and teardown) from overlapping.
"""

from __future__ import annotations

import logging
import math
import threading
import warnings
from enum import Enum
from typing import Iterable, Optional

import numpy as np

from ..core.errors import UnsupportedConfig
from .pitch import GranularPitchShifter, fluctuation_ratio
from .source import OUTPUT_CHANNELS, DecodedAudio

logger = logging.getLogger(__name__)

__all__ = [
    "CrossfadeLaw",
    "crossfade",
    "pan_position",
    "DecodeStage",
    "GainNode",
    "PanNode",
    "SoundGraph",
    "VolumeGraph",
    "FadeGraph",
    "CoreBranch",
    "PerCoreGroup",
    "close_all",
]


class CrossfadeLaw(str, Enum):
    LINEAR = "linear"
    EQUAL_POWER = "equal_power"

    @classmethod
    def parse(cls, value: "CrossfadeLaw | str") -> "CrossfadeLaw":
        if isinstance(value, CrossfadeLaw):
            return value
        key = str(value).strip().lower().replace("-", "_")
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown crossfade law {value!r}")


def crossfade(value: float, law: CrossfadeLaw = CrossfadeLaw.LINEAR) -> tuple[float, float]:
    """
    Return ``(idle_gain, active_gain)`` for a fade position in ``[0, 1]``.

    The linear law keeps the gains summing to 1.0. The equal-power law keeps
    their squares summing to 1.0, which sounds about 3 dB louder at the midpoint.
    """
    v = min(1.0, max(0.0, float(value)))
    if law is CrossfadeLaw.EQUAL_POWER:
        angle = v * math.pi / 2.0
        return math.cos(angle), math.sin(angle)
    return 1.0 - v, v


def pan_position(index: int, count: int) -> float:
    """Static pan for core ``index`` of ``count``: -1.0 is full left, 1.0 full right."""
    if count < 1 or not 0 <= index < count:
        raise ValueError(f"core index {index} out of range for {count} cores")
    if count == 1:
        return 0.0
    return -1.0 + 2.0 * index / (count - 1)


# ----------------------------------------------------------------------
# Nodes
# ----------------------------------------------------------------------
class DecodeStage:
    """
    Looping read cursor over one decoded asset.

    Wrapping at the end of the asset happens inside the same block, so loops
    are gapless. A stage is read by exactly one graph; per-core branches share
    the block a single read produces instead of reading the stage themselves.
    """

    def __init__(self, audio: DecodedAudio, name: str = "") -> None:
        self.name = name or (audio.path.name if audio.path is not None else "asset")
        self._audio: Optional[DecodedAudio] = audio
        self._length = len(audio)
        self._position = 0
        self.release_count = 0

    @property
    def position(self) -> int:
        return self._position

    @property
    def length(self) -> int:
        return self._length

    @property
    def released(self) -> bool:
        return self._audio is None

    def read(self, frames: int) -> np.ndarray:
        audio = self._audio
        if audio is None:
            raise RuntimeError(f"decode stage {self.name} was released")
        idx = (self._position + np.arange(frames)) % self._length
        self._position = int((self._position + frames) % self._length)
        return audio.frames[idx]

    def release(self) -> None:
        if self._audio is None:
            return
        self._audio = None
        self.release_count += 1


class GainNode:
    """Gain that ramps linearly from the previous block's value to the target."""

    __slots__ = ("_target", "_last")

    def __init__(self, gain: float = 0.0) -> None:
        self._target = float(gain)
        self._last = float(gain)

    @property
    def target(self) -> float:
        return self._target

    def set(self, gain: float) -> None:
        self._target = float(gain)

    def process(self, block: np.ndarray) -> np.ndarray:
        start, end = self._last, self._target
        self._last = end
        if start == end:
            return block * np.float32(end)
        n = block.shape[0]
        ramp = start + (end - start) * (np.arange(1, n + 1, dtype=np.float32) / n)
        return block * ramp[:, None]


class PanNode:
    """Static stereo balance; the far channel is folded into the near one."""

    __slots__ = ("pan",)

    def __init__(self, pan: float = 0.0) -> None:
        self.pan = min(1.0, max(-1.0, float(pan)))

    def process(self, block: np.ndarray) -> np.ndarray:
        p = self.pan
        if p == 0.0:
            return block
        left = block[:, 0]
        right = block[:, 1]
        out = np.empty_like(block)
        if p > 0.0:
            out[:, 0] = left * (1.0 - p)
            out[:, 1] = right + left * p
        else:
            q = -p
            out[:, 0] = left + right * q
            out[:, 1] = right * (1.0 - q)
        return out


# ----------------------------------------------------------------------
# Graphs
# ----------------------------------------------------------------------
class SoundGraph:
    """Base class: locking, mute/stall state, master level and teardown."""

    kind = "graph"

    def __init__(self, name: str, *, max_gain: float = 1.0, master: float = 1.0) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._stages: tuple[DecodeStage, ...] = ()
        self._value = 0.0
        self._max_gain = max(0.0, float(max_gain))
        self._master = min(1.0, max(0.0, float(master)))
        self._muted = False
        self._stalled = False
        self._closed = False

    # -- introspection -------------------------------------------------
    @property
    def decode_stages(self) -> tuple[DecodeStage, ...]:
        return self._stages

    @property
    def value(self) -> float:
        return self._value

    @property
    def master(self) -> float:
        return self._master

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def stalled(self) -> bool:
        return self._stalled

    @property
    def closed(self) -> bool:
        return self._closed

    def _scale(self) -> float:
        if self._muted or self._stalled:
            return 0.0
        return self._max_gain * self._master

    # -- control (tick thread) -----------------------------------------
    def apply(self, value: float) -> None:
        with self._lock:
            if self._closed:
                return
            self._value = float(value)
            self._update()

    def set_master(self, master: float) -> None:
        with self._lock:
            self._master = min(1.0, max(0.0, float(master)))
            self._update()

    def set_muted(self, muted: bool) -> None:
        with self._lock:
            self._muted = bool(muted)
            self._update()

    def mark_stalled(self) -> None:
        with self._lock:
            if not self._stalled:
                logger.warning("Sound graph %s stalled; muting it", self.name)
            self._stalled = True

    # -- audio thread --------------------------------------------------
    def render(self, frames: int) -> np.ndarray:
        with self._lock:
            if self._closed or self._stalled:
                return np.zeros((frames, OUTPUT_CHANNELS), dtype=np.float32)
            return self._render(frames)

    # -- teardown ------------------------------------------------------
    def close(self) -> None:
        """Release every decode stage exactly once; later calls are no-ops."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for stage in self._stages:
                stage.release()
            self._drop_nodes()
        logger.debug("Closed sound graph %s", self.name)

    # -- subclass hooks ------------------------------------------------
    def _update(self) -> None:
        raise NotImplementedError

    def _render(self, frames: int) -> np.ndarray:
        raise NotImplementedError

    def _drop_nodes(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, value={self._value:.3f}, muted={self._muted})"


class VolumeGraph(SoundGraph):
    """One looping source whose gain follows the channel value."""

    kind = "volume"

    def __init__(
        self,
        name: str,
        audio: DecodedAudio,
        *,
        max_gain: float = 1.0,
        master: float = 1.0,
        pitch: Optional[GranularPitchShifter] = None,
    ) -> None:
        super().__init__(name, max_gain=max_gain, master=master)
        self._stage = DecodeStage(audio, name=f"{name}:source")
        self._stages = (self._stage,)
        self._pitch = pitch
        self._gain = GainNode(0.0)

    @property
    def gain(self) -> float:
        return self._gain.target

    @property
    def pitch(self) -> Optional[GranularPitchShifter]:
        return self._pitch

    def _update(self) -> None:
        self._gain.set(self._value * self._scale())
        if self._pitch is not None:
            self._pitch.set_ratio(fluctuation_ratio(self._value))

    def _render(self, frames: int) -> np.ndarray:
        block = self._stage.read(frames)
        if self._pitch is not None:
            block = self._pitch.process(block)
        return self._gain.process(block)

    def _drop_nodes(self) -> None:
        self._pitch = None


class FadeGraph(SoundGraph):
    """
    Idle (A) and active (B) loops crossfaded by the channel value.

    Both stages are read in the same render call, so they start together and
    stay phase-locked. A failure in either stage stalls the whole graph.
    """

    kind = "fade"

    def __init__(
        self,
        name: str,
        idle: DecodedAudio,
        active: DecodedAudio,
        *,
        law: CrossfadeLaw = CrossfadeLaw.LINEAR,
        max_gain: float = 1.0,
        master: float = 1.0,
        pitch: Optional[GranularPitchShifter] = None,
    ) -> None:
        super().__init__(name, max_gain=max_gain, master=master)
        self.law = CrossfadeLaw.parse(law)
        self._idle = DecodeStage(idle, name=f"{name}:idle")
        self._active = DecodeStage(active, name=f"{name}:active")
        self._stages = (self._idle, self._active)
        self._pitch = pitch
        idle_gain, active_gain = crossfade(0.0, self.law)
        self._idle_gain = GainNode(idle_gain * self._scale())
        self._active_gain = GainNode(active_gain * self._scale())

    @property
    def gains(self) -> tuple[float, float]:
        return self._idle_gain.target, self._active_gain.target

    @property
    def pitch(self) -> Optional[GranularPitchShifter]:
        return self._pitch

    def _update(self) -> None:
        idle_gain, active_gain = crossfade(self._value, self.law)
        scale = self._scale()
        self._idle_gain.set(idle_gain * scale)
        self._active_gain.set(active_gain * scale)
        if self._pitch is not None:
            self._pitch.set_ratio(fluctuation_ratio(self._value))

    def _render(self, frames: int) -> np.ndarray:
        idle = self._idle.read(frames)
        active = self._active.read(frames)
        if self._pitch is not None:
            active = self._pitch.process(active)
        return self._idle_gain.process(idle) + self._active_gain.process(active)

    def _drop_nodes(self) -> None:
        self._pitch = None


class CoreBranch:
    """Gain and pan for one core, fed from the group's shared decode stage."""

    __slots__ = ("index", "gain", "pan", "_group", "_value")

    def __init__(self, group: "PerCoreGroup", index: int, pan: float) -> None:
        self.index = index
        self.gain = GainNode(0.0)
        self.pan = PanNode(pan)
        self._group = group
        self._value = 0.0

    @property
    def value(self) -> float:
        return self._value

    def apply(self, value: float) -> None:
        self._group._apply_branch(self, float(value))

    def _update(self, scale: float) -> None:
        self.gain.set(self._value * scale)

    def process(self, block: np.ndarray) -> np.ndarray:
        return self.pan.process(self.gain.process(block))


class PerCoreGroup(SoundGraph):
    """
    One decode stage fanned out to N panned branches, one per CPU core.

    All branches consume the same block from a single stage read, so they
    share one loop position and cannot drift apart. The core count is fixed
    at construction. Each branch is scaled by ``1/sqrt(N)`` to keep the sum
    of uncorrelated-looking loads at a sensible level.
    """

    kind = "per_core"

    def __init__(
        self,
        name: str,
        audio: DecodedAudio,
        core_count: int,
        *,
        max_gain: float = 1.0,
        master: float = 1.0,
        frequency_fluctuation: bool = False,
    ) -> None:
        count = int(core_count)
        if count < 1:
            raise ValueError(f"core_count must be >= 1, got {core_count!r}")
        if frequency_fluctuation:
            message = "FrequencyFluctuation is not supported for per-core CPU sounds; ignoring it"
            logger.warning("%s (graph %s)", message, name)
            warnings.warn(message, UnsupportedConfig, stacklevel=2)
        super().__init__(name, max_gain=max_gain, master=master)
        self._stage = DecodeStage(audio, name=f"{name}:shared")
        self._stages = (self._stage,)
        self._core_count = count
        self._norm = 1.0 / math.sqrt(count)
        self._branches: tuple[CoreBranch, ...] = tuple(
            CoreBranch(self, i, pan_position(i, count)) for i in range(count)
        )

    @property
    def core_count(self) -> int:
        return self._core_count

    @property
    def branches(self) -> tuple[CoreBranch, ...]:
        return self._branches

    def branch(self, index: int) -> CoreBranch:
        return self._branches[index]

    def pans(self) -> list[float]:
        return [b.pan.pan for b in self._branches]

    def _apply_branch(self, branch: CoreBranch, value: float) -> None:
        with self._lock:
            if self._closed:
                return
            branch._value = value
            branch._update(self._scale() * self._norm)

    def apply(self, value: float) -> None:
        """Drive every branch with the same value."""
        with self._lock:
            if self._closed:
                return
            self._value = float(value)
            for branch in self._branches:
                branch._value = self._value
            self._update()

    def _update(self) -> None:
        scale = self._scale() * self._norm
        for branch in self._branches:
            branch._update(scale)

    def _render(self, frames: int) -> np.ndarray:
        block = self._stage.read(frames)
        mix = np.zeros((frames, OUTPUT_CHANNELS), dtype=np.float32)
        for branch in self._branches:
            mix += branch.process(block)
        return mix


def close_all(graphs: Iterable[SoundGraph]) -> None:
    for graph in graphs:
        graph.close()