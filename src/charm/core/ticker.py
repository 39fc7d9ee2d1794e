"""Periodic Qt timer that samples metrics and feeds them to the engine."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from PySide6.QtCore import QObject, Qt, QTimer

from .models import MetricSource, Samples

logger = logging.getLogger(__name__)

__all__ = ["RefreshRate", "TickDriver", "MIN_INTERVAL_MS", "MAX_INTERVAL_MS"]

MIN_INTERVAL_MS = 100
MAX_INTERVAL_MS = 1000

SampleSink = Callable[[Samples], None]


class RefreshRate(Enum):
    FAST = 100
    NORMAL = 250
    SLOW = 500
    VERY_SLOW = 1000

    @property
    def interval_ms(self) -> int:
        return int(self.value)

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    @classmethod
    def parse(cls, value: "RefreshRate | str") -> "RefreshRate":
        if isinstance(value, RefreshRate):
            return value
        key = str(value).strip().lower().replace("_", "-")
        for member in cls:
            if member.label == key:
                return member
        raise ValueError(f"Unknown refresh rate {value!r}")


def clamp_interval(interval_ms: int) -> int:
    return max(MIN_INTERVAL_MS, min(MAX_INTERVAL_MS, int(interval_ms)))


class TickDriver(QObject):
    """
    Call ``sink(source.sample())`` every ``interval_ms`` on the Qt event loop.

    ``stop()`` stops the timer and drops the source and sink references, so a
    late timeout can never reach an engine that has already been torn down.
    Errors raised by the source or the sink are logged and the timer keeps
    running.
    """

    def __init__(
        self,
        source: MetricSource,
        sink: SampleSink,
        interval_ms: int = RefreshRate.NORMAL.interval_ms,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._source: Optional[MetricSource] = source
        self._sink: Optional[SampleSink] = sink
        self._timer = QTimer(self)
        self._timer.setTimerType(Qt.PreciseTimer)
        self._timer.setInterval(clamp_interval(interval_ms))
        self._timer.timeout.connect(self.tick)
        self.tick_count = 0
        self.error_count = 0

    @property
    def interval_ms(self) -> int:
        return int(self._timer.interval())

    @property
    def running(self) -> bool:
        return self._timer.isActive()

    def start(self) -> None:
        if self._source is None or self._sink is None:
            raise RuntimeError("TickDriver was stopped; create a new one to restart ticking")
        if self._timer.isActive():
            return
        self._timer.start()
        logger.debug("Tick driver started (%d ms)", self.interval_ms)

    def stop(self) -> None:
        self._timer.stop()
        self._source = None
        self._sink = None
        logger.debug("Tick driver stopped after %d tick(s)", self.tick_count)

    def set_interval(self, interval_ms: int) -> int:
        """Change the cadence (clamped to 100-1000 ms) and return the applied interval."""
        interval = clamp_interval(interval_ms)
        self._timer.setInterval(interval)
        if self._timer.isActive():
            self._timer.start()
        logger.debug("Tick interval set to %d ms", interval)
        return interval

    def tick(self) -> bool:
        """Run one tick synchronously; return ``True`` if samples reached the sink."""
        source, sink = self._source, self._sink
        if source is None or sink is None:
            return False
        try:
            samples = source.sample()
            sink(samples)
        except Exception:
            self.error_count += 1
            logger.exception("Tick failed")
            return False
        self.tick_count += 1
        return True
