"""Exception types raised by the metric-to-audio engine."""

from __future__ import annotations

__all__ = [
    "InvalidSample",
    "PackLoadError",
    "PlaybackStall",
    "UnsupportedConfig",
]


class InvalidSample(ValueError):
    """A metric sample is non-finite or outside ``[0.0, 1.0]``."""

    def __init__(self, value: object, signal: object = None) -> None:
        self.value = value
        self.signal = signal
        where = f" for {signal}" if signal is not None else ""
        super().__init__(f"Invalid metric sample{where}: {value!r} (expected a finite value in [0, 1])")


class PackLoadError(RuntimeError):
    """A sound pack cannot be turned into playable graphs."""


class PlaybackStall(RuntimeError):
    """Rendering failed for one graph while the session was running."""

    def __init__(self, graph_name: str, cause: BaseException | None = None) -> None:
        self.graph_name = graph_name
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Playback stalled on {graph_name}{detail}")


class UnsupportedConfig(UserWarning):
    """A pack option is not supported for the selected mode and was ignored."""
