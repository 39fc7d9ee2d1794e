"""
Metric-to-audio engine.

The engine owns one :class:`~charm.core.channel.Channel` per monitored signal
and the sound graphs those channels drive. A single re-entrant lock
serialises ``update``, the commit step of ``load``, ``set_volume``,
``set_enabled`` and ``stop``. Asset decoding and graph construction happen
outside the lock so a pack switch never blocks the tick cadence.
"""

from __future__ import annotations

import logging
import threading
import warnings
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol

import psutil

from ..audio.graph import (
    CrossfadeLaw,
    FadeGraph,
    PerCoreGroup,
    SoundGraph,
    VolumeGraph,
    close_all,
)
from ..audio.output import AudioOutput
from ..audio.pitch import GranularPitchShifter
from ..audio.source import AssetDecoder, DecodedAudio, decode_asset
from ..packs.models import ChannelSounds, SoundPack
from .channel import Channel
from .errors import InvalidSample, PackLoadError, UnsupportedConfig
from .models import CPU_AVERAGE, DISK, RAM, Category, Signal, SoundMode

logger = logging.getLogger(__name__)

__all__ = ["Engine", "EngineState"]

_AVERAGE_SIGNALS = {Category.CPU: CPU_AVERAGE, Category.RAM: RAM, Category.DISK: DISK}


class EngineState(str, Enum):
    IDLE = "idle"
    LOADED = "loaded"
    RUNNING = "running"
    STOPPED = "stopped"


class _Drivable(Protocol):
    def apply(self, value: float) -> None:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class _Binding:
    channel: Channel
    target: _Drivable


@dataclass(slots=True)
class _Session:
    """Everything built from one pack; committed or discarded as a unit."""

    pack: SoundPack
    graphs: List[SoundGraph] = field(default_factory=list)
    bindings: Dict[Signal, _Binding] = field(default_factory=dict)
    by_category: Dict[Category, SoundGraph] = field(default_factory=dict)

    def graph_named(self, name: str) -> Optional[SoundGraph]:
        for graph in self.graphs:
            if graph.name == name:
                return graph
        return None


class Engine:
    """
    Drives sound graphs from smoothed system metrics.

    Parameters
    ----------
    output:
        The audio output the graphs are attached to.
    decoder:
        Callable turning an asset path into :class:`DecodedAudio` at the
        output sample rate.
    core_count:
        Number of per-core branches for packs with ``UseAverages=0``. Fixed for
        the engine's lifetime; defaults to the logical CPU count.
    crossfade_law:
        ``"linear"`` (default) or ``"equal_power"`` for fade graphs.
    """

    def __init__(
        self,
        output: AudioOutput,
        *,
        decoder: AssetDecoder = decode_asset,
        core_count: Optional[int] = None,
        crossfade_law: CrossfadeLaw | str = CrossfadeLaw.LINEAR,
        master_volume: float = 1.0,
    ) -> None:
        self._output = output
        self._decoder = decoder
        count = core_count if core_count is not None else (psutil.cpu_count(logical=True) or 1)
        if int(count) < 1:
            raise ValueError(f"core_count must be >= 1, got {count!r}")
        self._core_count = int(count)
        self._law = CrossfadeLaw.parse(crossfade_law)
        self._master = min(1.0, max(0.0, float(master_volume)))
        self._enabled: Dict[Category, bool] = {c: True for c in Category}
        self._lock = threading.RLock()
        self._state = EngineState.IDLE
        self._session: Optional[_Session] = None
        self._generation = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def pack(self) -> Optional[SoundPack]:
        session = self._session
        return session.pack if session is not None else None

    @property
    def core_count(self) -> int:
        return self._core_count

    @property
    def master_volume(self) -> float:
        return self._master

    @property
    def channels(self) -> Dict[Signal, Channel]:
        with self._lock:
            session = self._session
            if session is None:
                return {}
            return {signal: b.channel for signal, b in session.bindings.items()}

    @property
    def graphs(self) -> tuple[SoundGraph, ...]:
        with self._lock:
            session = self._session
            return tuple(session.graphs) if session is not None else ()

    def graph_for(self, category: Category | str) -> Optional[SoundGraph]:
        with self._lock:
            session = self._session
            if session is None:
                return None
            return session.by_category.get(Category.parse(category))

    def is_enabled(self, category: Category | str) -> bool:
        return self._enabled[Category.parse(category)]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def load(self, pack: SoundPack) -> bool:
        """
        Build graphs for ``pack`` and swap them in for the current set.

        Returns ``False`` when a ``stop()`` or a newer ``load()`` superseded
        this one while it was building; the half-built graphs are released.

        Raises
        ------
        PackLoadError
            A required asset is missing or cannot be decoded. The engine keeps
            whatever it had loaded before.
        """
        with self._lock:
            self._generation += 1
            ticket = self._generation
            master = self._master

        logger.info("Loading sound pack %s (%s)", pack.name, pack.description())
        session = self._build(pack, master)

        with self._lock:
            if ticket != self._generation:
                logger.info("Load of %s was superseded; discarding it", pack.name)
                close_all(session.graphs)
                return False
            for graph in session.graphs:
                graph.set_master(self._master)
            for category, graph in session.by_category.items():
                if not self._enabled[category]:
                    graph.set_muted(True)
            previous = self._session
            self._output.replace(session.graphs)
            self._session = session
            if previous is not None:
                close_all(previous.graphs)
            if self._state is not EngineState.RUNNING:
                self._state = EngineState.LOADED
        logger.info(
            "Sound pack %s loaded: %d graph(s), %d channel(s)",
            pack.name,
            len(session.graphs),
            len(session.bindings),
        )
        return True

    def start(self) -> None:
        """Open the audio output and begin playback of the loaded pack."""
        with self._lock:
            if self._session is None:
                raise RuntimeError("No sound pack loaded")
            if self._state is EngineState.RUNNING:
                return
            self._output.start()
            self._state = EngineState.RUNNING
        logger.info("Engine running")

    def stop(self) -> None:
        """Tear down every graph and close the output. Safe from any state."""
        with self._lock:
            self._generation += 1
            session, self._session = self._session, None
            detached = self._output.close()
            if session is not None:
                close_all(session.graphs)
            close_all(detached)
            previous, self._state = self._state, EngineState.STOPPED
        if previous is not EngineState.STOPPED:
            logger.info("Engine stopped")

    # ------------------------------------------------------------------
    # Tick path and controls
    # ------------------------------------------------------------------
    def update(self, samples: Mapping[Signal, float]) -> None:
        """Feed one tick of samples to every live channel."""
        with self._lock:
            session = self._session
            if session is None:
                return
            self._handle_stalls(session)
            for signal, binding in session.bindings.items():
                if signal not in samples or not self._enabled[signal.category]:
                    continue
                try:
                    binding.channel.set_target(samples[signal])
                except InvalidSample as exc:
                    logger.warning("%s; dropping this tick for %s", exc, signal)
                    continue
                binding.target.apply(binding.channel.step())

    def set_volume(self, master: float) -> float:
        """Set the master volume (clamped to ``[0, 1]``) and return the applied value."""
        value = min(1.0, max(0.0, float(master)))
        with self._lock:
            self._master = value
            session = self._session
            if session is not None:
                for graph in session.graphs:
                    graph.set_master(value)
        logger.debug("Master volume set to %.2f", value)
        return value

    def set_enabled(self, category: Category | str, enabled: bool) -> None:
        """Mute or unmute a category without touching its graph's loop or its channels."""
        cat = Category.parse(category)
        with self._lock:
            self._enabled[cat] = bool(enabled)
            session = self._session
            graph = session.by_category.get(cat) if session is not None else None
            if graph is not None:
                graph.set_muted(not enabled)
        logger.info("%s monitoring %s", cat.value.upper(), "enabled" if enabled else "disabled")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _handle_stalls(self, session: _Session) -> None:
        for stall in self._output.drain_stalls():
            logger.error("%s", stall)
            graph = session.graph_named(stall.graph_name)
            if graph is not None:
                graph.set_muted(True)

    def _build(self, pack: SoundPack, master: float) -> _Session:
        session = _Session(pack=pack)
        cache: Dict[Path, DecodedAudio] = {}
        try:
            for category in pack.active_categories():
                self._build_category(session, category, master, cache)
        except BaseException:
            close_all(session.graphs)
            raise
        return session

    def _decode(self, path: Path, cache: Dict[Path, DecodedAudio]) -> DecodedAudio:
        audio = cache.get(path)
        if audio is None:
            audio = self._decoder(path, self._output.samplerate)
            cache[path] = audio
        return audio

    def _pitch(self, pack: SoundPack) -> Optional[GranularPitchShifter]:
        if not pack.frequency_fluctuation:
            return None
        return GranularPitchShifter(self._output.samplerate)

    def _build_category(
        self,
        session: _Session,
        category: Category,
        master: float,
        cache: Dict[Path, DecodedAudio],
    ) -> None:
        pack = session.pack
        mode = pack.mode(category)
        sounds = pack.sounds_for(category)
        name = f"{pack.name}:{category.value}"
        per_core = category is Category.CPU and not pack.use_averages
        required = 2 if mode is SoundMode.FADE and not per_core else 1
        _require_assets(category, mode, sounds, required)

        if per_core:
            if mode is SoundMode.FADE:
                message = "Fade mode is not supported for per-core CPU sounds; using the idle sound with volume control"
                logger.warning("%s (pack %s)", message, pack.name)
                warnings.warn(message, UnsupportedConfig, stacklevel=2)
            group = PerCoreGroup(
                name,
                self._decode(sounds.primary, cache),  # type: ignore[arg-type]
                self._core_count,
                max_gain=pack.max_gain,
                master=master,
                frequency_fluctuation=pack.frequency_fluctuation,
            )
            session.graphs.append(group)
            session.by_category[category] = group
            for branch in group.branches:
                signal = Signal.cpu_core(branch.index)
                channel = Channel(signal, SoundMode.VOLUME, pack.slide_interval)
                session.bindings[signal] = _Binding(channel, branch)
            return

        graph: SoundGraph
        if mode is SoundMode.FADE:
            graph = FadeGraph(
                name,
                self._decode(sounds.primary, cache),  # type: ignore[arg-type]
                self._decode(sounds.secondary, cache),  # type: ignore[arg-type]
                law=self._law,
                max_gain=pack.max_gain,
                master=master,
                pitch=self._pitch(pack),
            )
        else:
            graph = VolumeGraph(
                name,
                self._decode(sounds.primary, cache),  # type: ignore[arg-type]
                max_gain=pack.max_gain,
                master=master,
                pitch=self._pitch(pack),
            )
        session.graphs.append(graph)
        session.by_category[category] = graph
        signal = _AVERAGE_SIGNALS[category]
        session.bindings[signal] = _Binding(Channel(signal, mode, pack.slide_interval), graph)


def _require_assets(category: Category, mode: SoundMode, sounds: ChannelSounds, required: int) -> None:
    if sounds.primary is None:
        raise PackLoadError(f"Missing sound file for {category.value} ({mode.name.lower()} mode)")
    if required == 2 and sounds.secondary is None:
        raise PackLoadError(
            f"Fade mode for {category.value} needs an idle/active pair (_A and _B), found only {sounds.primary.name}"
        )
