from __future__ import annotations

import numpy as np
import pytest

from charm.audio.graph import VolumeGraph
from charm.audio.output import AudioOutput
from charm.audio.source import DecodedAudio
from charm.core.errors import PlaybackStall
from conftest import FakeStream


def _graph(name: str, level: float = 0.5) -> VolumeGraph:
    audio = DecodedAudio(frames=np.full((64, 2), level, dtype=np.float32), samplerate=8000)
    graph = VolumeGraph(name, audio)
    graph.apply(1.0)
    graph.render(8)  # settle the gain ramp
    return graph


def test_start_opens_a_stereo_float_stream(output: AudioOutput) -> None:
    output.start()
    output.start()
    assert len(FakeStream.instances) == 1
    stream = FakeStream.instances[0]
    assert stream.started
    assert stream.kwargs["channels"] == 2
    assert stream.kwargs["dtype"] == "float32"
    assert stream.kwargs["samplerate"] == 8000
    assert output.running


def test_callback_fills_outdata_with_the_mix(output: AudioOutput) -> None:
    output.replace([_graph("a", 0.25), _graph("b", 0.5)])
    output.start()
    outdata = np.empty((32, 2), dtype=np.float32)
    FakeStream.instances[0].callback(outdata, 32, None, None)
    np.testing.assert_allclose(outdata, 0.75)


def test_mix_is_clipped(output: AudioOutput) -> None:
    output.replace(_graph(name, 0.9) for name in "abc")
    block = output.render(16)
    assert block.max() == pytest.approx(1.0)


def test_failing_graph_is_stalled_and_reported(output: AudioOutput) -> None:
    good = _graph("good", 0.5)
    bad = _graph("bad", 0.5)
    bad.decode_stages[0].release()
    output.replace([good, bad])

    block = output.render(16)

    np.testing.assert_allclose(block, 0.5)
    assert bad.stalled
    stalls = output.drain_stalls()
    assert len(stalls) == 1
    assert isinstance(stalls[0], PlaybackStall)
    assert stalls[0].graph_name == "bad"
    assert output.drain_stalls() == []
    # a stalled graph renders silence instead of raising again
    output.render(16)
    assert output.drain_stalls() == []


def test_replace_swaps_graph_list_atomically(output: AudioOutput) -> None:
    first = [_graph("a"), _graph("b")]
    second = [_graph("c")]
    output.replace(first)
    old = output.replace(second)
    assert list(old) == first
    assert output.graphs == tuple(second)
    assert output.replace(()) == tuple(second)
    assert output.graphs == ()


def test_close_stops_stream_and_detaches_graphs(output: AudioOutput) -> None:
    graph = _graph("a")
    output.replace([graph])
    output.start()
    detached = output.close()
    stream = FakeStream.instances[0]
    assert stream.closed and not stream.started
    assert detached == (graph,)
    assert output.graphs == ()
    assert not output.running
    output.close()
