from .analyser import AnalyserNode
from .context import RENDER_QUANTUM, AudioContext, AudioListener, ContextState
from .nodes import (
    AudioBufferSourceNode,
    AudioDestinationNode,
    AudioNode,
    GainNode,
    PannerNode,
    StereoPannerNode,
)
from .params import AudioParam

__all__ = [
    "AnalyserNode",
    "AudioBufferSourceNode",
    "AudioContext",
    "AudioDestinationNode",
    "AudioListener",
    "AudioNode",
    "AudioParam",
    "ContextState",
    "GainNode",
    "PannerNode",
    "RENDER_QUANTUM",
    "StereoPannerNode",
]
