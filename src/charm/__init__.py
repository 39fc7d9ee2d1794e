"""CHARM: ambient audio that follows CPU, memory and disk activity.

Sound packs (:mod:`charm.packs`) describe which loops to play; the
:class:`~charm.core.engine.Engine` smooths samples from a metric source
(:mod:`charm.monitor`) and drives the sound graphs (:mod:`charm.audio`) that
the output stream mixes.
"""

from .core.engine import Engine, EngineState
from .core.errors import InvalidSample, PackLoadError, PlaybackStall, UnsupportedConfig
from .packs import PackLoader, SoundPack

__version__ = "0.3.0"

__all__ = [
    "Engine",
    "EngineState",
    "InvalidSample",
    "PackLoadError",
    "PackLoader",
    "PlaybackStall",
    "SoundPack",
    "UnsupportedConfig",
    "__version__",
]
