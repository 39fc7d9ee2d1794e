"""Single PortAudio output stream that mixes the current sound graphs."""

from __future__ import annotations

import logging
import threading
from queue import Empty, SimpleQueue
from typing import Any, Callable, Iterable, List, Optional

import numpy as np

from ..core.errors import PlaybackStall
from .graph import SoundGraph
from .source import OUTPUT_CHANNELS

logger = logging.getLogger(__name__)

__all__ = ["AudioOutput", "StreamFactory", "open_output_stream"]

DEFAULT_SAMPLERATE = 48_000
DEFAULT_BLOCKSIZE = 1024

StreamFactory = Callable[..., Any]


def open_output_stream(**kwargs: Any) -> Any:
    """Open a ``sounddevice.OutputStream``; the import is deferred until a stream is needed."""
    import sounddevice as sd

    return sd.OutputStream(**kwargs)


class AudioOutput:
    """
    Owns the output stream and the list of graphs it renders.

    ``render()`` runs on the PortAudio callback thread. A graph that raises
    while rendering is marked stalled and a :class:`PlaybackStall` is queued;
    the other graphs keep playing. The engine collects the reports through
    :meth:`drain_stalls` on its next tick.
    """

    def __init__(
        self,
        samplerate: int = DEFAULT_SAMPLERATE,
        blocksize: int = DEFAULT_BLOCKSIZE,
        device: Optional[int | str] = None,
        *,
        stream_factory: Optional[StreamFactory] = None,
    ) -> None:
        if samplerate <= 0:
            raise ValueError("samplerate must be positive")
        self.samplerate = int(samplerate)
        self.blocksize = max(0, int(blocksize))
        self.device = device
        self._stream_factory = stream_factory or open_output_stream
        self._stream: Any = None
        self._graphs: tuple[SoundGraph, ...] = ()
        self._lock = threading.Lock()
        self._stalls: SimpleQueue[PlaybackStall] = SimpleQueue()
        self._last_status: Optional[str] = None

    # ------------------------------------------------------------------
    # Graph list
    # ------------------------------------------------------------------
    @property
    def graphs(self) -> tuple[SoundGraph, ...]:
        with self._lock:
            return self._graphs

    def replace(self, graphs: Iterable[SoundGraph]) -> tuple[SoundGraph, ...]:
        """Swap the whole graph list in one step and return the previous one."""
        new = tuple(graphs)
        with self._lock:
            old, self._graphs = self._graphs, new
        return old

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def render(self, frames: int) -> np.ndarray:
        with self._lock:
            graphs = self._graphs
        mix = np.zeros((frames, OUTPUT_CHANNELS), dtype=np.float32)
        for graph in graphs:
            try:
                mix += graph.render(frames)
            except Exception as exc:
                graph.mark_stalled()
                self._stalls.put(PlaybackStall(graph.name, exc))
        np.clip(mix, -1.0, 1.0, out=mix)
        return mix

    def drain_stalls(self) -> List[PlaybackStall]:
        stalls: List[PlaybackStall] = []
        while True:
            try:
                stalls.append(self._stalls.get_nowait())
            except Empty:
                return stalls

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        if status:
            text = str(status)
            if text != self._last_status:
                logger.debug("Output stream status: %s", text)
            self._last_status = text
        outdata[:] = self.render(frames)

    # ------------------------------------------------------------------
    # Stream lifecycle
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        if self._stream is not None:
            return
        logger.debug(
            "Opening output stream (device=%s, %d Hz, blocksize=%d)",
            self.device,
            self.samplerate,
            self.blocksize,
        )
        stream = self._stream_factory(
            samplerate=self.samplerate,
            blocksize=self.blocksize,
            device=self.device,
            channels=OUTPUT_CHANNELS,
            dtype="float32",
            callback=self._callback,
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        self._stream = stream
        logger.info("Output stream started (%d Hz)", self.samplerate)

    def close(self) -> tuple[SoundGraph, ...]:
        """Stop the stream and detach every graph; returns the detached graphs."""
        stream = self._stream
        self._stream = None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except Exception as exc:
                logger.debug("Output stream close error: %s", exc)
            logger.info("Output stream stopped")
        return self.replace(())
