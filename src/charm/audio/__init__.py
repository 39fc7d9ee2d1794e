"""Audio side of CHARM: asset decoding, sound graphs, pitch, and the output stream.

Graphs are built on the control thread and rendered on the PortAudio callback
thread through :class:`AudioOutput`.
"""

from .graph import (
    CoreBranch,
    CrossfadeLaw,
    DecodeStage,
    FadeGraph,
    PerCoreGroup,
    SoundGraph,
    VolumeGraph,
    crossfade,
    pan_position,
)
from .output import AudioOutput
from .pitch import GranularPitchShifter, fluctuation_ratio
from .source import DecodedAudio, decode_asset

__all__ = [
    "AudioOutput",
    "CoreBranch",
    "CrossfadeLaw",
    "DecodeStage",
    "DecodedAudio",
    "FadeGraph",
    "GranularPitchShifter",
    "PerCoreGroup",
    "SoundGraph",
    "VolumeGraph",
    "crossfade",
    "decode_asset",
    "fluctuation_ratio",
    "pan_position",
]
