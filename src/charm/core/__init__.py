"""Core of CHARM: signal identities, smoothing channels, and the error taxonomy.

The engine itself lives in :mod:`charm.core.engine` and the Qt tick driver in
:mod:`charm.core.ticker`; both pull in the audio layer, so they are imported
from their modules rather than re-exported here.
"""

from .channel import Channel
from .errors import InvalidSample, PackLoadError, PlaybackStall, UnsupportedConfig
from .models import (
    CPU_AVERAGE,
    DISK,
    RAM,
    Category,
    MetricSource,
    Samples,
    Signal,
    SignalKind,
    SoundMode,
)

__all__ = [
    "CPU_AVERAGE",
    "DISK",
    "RAM",
    "Category",
    "Channel",
    "InvalidSample",
    "MetricSource",
    "PackLoadError",
    "PlaybackStall",
    "Samples",
    "Signal",
    "SignalKind",
    "SoundMode",
    "UnsupportedConfig",
]
