"""
Headless AudioContext.

The context owns a clock and a set of nodes.  There is no audio thread:
``current_time`` is derived from a monotonic clock (advancing only while
the context is running) and quantised to 128-frame render quanta, and node
output is rendered on demand for whatever span a reader asks about.  A
test therefore "lets audio play" simply by awaiting real time.

The clock is injectable so that deterministic tests can drive it by hand.
"""
from __future__ import annotations

import enum
import logging
import time
import weakref
from typing import Callable, Optional

import numpy as np

from ..buffer import SampleBuffer
from ..errors import InvalidStateError
from .analyser import DEFAULT_FFT_SIZE, AnalyserNode
from .nodes import (
    AudioBufferSourceNode,
    AudioDestinationNode,
    AudioNode,
    GainNode,
    PannerNode,
    StereoPannerNode,
)

logger = logging.getLogger(__name__)

RENDER_QUANTUM = 128
DEFAULT_SAMPLE_RATE = 44100


class ContextState(str, enum.Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    CLOSED = "closed"


class AudioListener:
    """Listener pose for 3D panning: position, forward and up vectors."""

    def __init__(self) -> None:
        self.position = np.zeros(3, dtype=np.float64)
        self.forward = np.array([0.0, 0.0, -1.0])
        self.up = np.array([0.0, 1.0, 0.0])

    def set_position(self, x: float, y: float, z: float) -> None:
        self.position = np.array([x, y, z], dtype=np.float64)

    def set_orientation(self, fx: float, fy: float, fz: float, ux: float, uy: float, uz: float) -> None:
        self.forward = np.array([fx, fy, fz], dtype=np.float64)
        self.up = np.array([ux, uy, uz], dtype=np.float64)


class AudioContext:
    """Owns the clock, the listener, the destination and every node it creates."""

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be > 0, got {sample_rate!r}")
        self.sample_rate = int(sample_rate)
        self._clock = clock
        self._state = ContextState.RUNNING
        self._elapsed = 0.0
        self._resumed_at = clock()
        self._nodes: "weakref.WeakSet[AudioNode]" = weakref.WeakSet()
        self.listener = AudioListener()
        self.destination = AudioDestinationNode(self)
        logger.debug("AudioContext created (sample_rate=%d)", self.sample_rate)

    # ── clock ──
    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is ContextState.CLOSED

    def _raw_elapsed(self) -> float:
        if self._state is ContextState.RUNNING:
            return self._elapsed + (self._clock() - self._resumed_at)
        return self._elapsed

    @property
    def current_frame(self) -> int:
        """Frames rendered so far, rounded down to a whole render quantum."""
        frames = int(self._raw_elapsed() * self.sample_rate)
        return frames - frames % RENDER_QUANTUM

    @property
    def current_time(self) -> float:
        return self.current_frame / self.sample_rate

    @property
    def base_latency(self) -> float:
        return RENDER_QUANTUM / self.sample_rate

    # ── lifecycle ──
    async def suspend(self) -> None:
        if self.is_closed:
            raise InvalidStateError("Cannot suspend a closed context")
        if self._state is ContextState.RUNNING:
            self._elapsed = self._raw_elapsed()
            self._state = ContextState.SUSPENDED
            logger.debug("AudioContext suspended at %.3fs", self._elapsed)

    async def resume(self) -> None:
        if self.is_closed:
            raise InvalidStateError("Cannot resume a closed context")
        if self._state is ContextState.SUSPENDED:
            self._resumed_at = self._clock()
            self._state = ContextState.RUNNING
            logger.debug("AudioContext resumed at %.3fs", self._elapsed)

    async def close(self) -> None:
        """Stop the clock and disconnect every node.  Closing twice is a no-op."""
        if self.is_closed:
            return
        self._elapsed = self._raw_elapsed()
        self._state = ContextState.CLOSED
        for node in list(self._nodes):
            node._release()
        logger.debug("AudioContext closed at %.3fs", self._elapsed)

    async def __aenter__(self) -> "AudioContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ── factories ──
    def _register(self, node: AudioNode) -> None:
        self._nodes.add(node)

    def _check_open(self, what: str) -> None:
        if self.is_closed:
            raise InvalidStateError(f"Cannot create {what} on a closed context")

    def create_buffer(self, channels: int, length: int, sample_rate: Optional[int] = None) -> SampleBuffer:
        """A silent buffer of *length* frames."""
        self._check_open("a buffer")
        if channels < 1 or length < 0:
            raise ValueError(f"Invalid buffer layout channels={channels!r} length={length!r}")
        sr = self.sample_rate if sample_rate is None else sample_rate
        return SampleBuffer(channels=tuple(np.zeros(length) for _ in range(channels)), sample_rate=sr)

    def create_buffer_source(self) -> AudioBufferSourceNode:
        self._check_open("a buffer source")
        return AudioBufferSourceNode(self)

    def create_gain(self, gain: float = 1.0) -> GainNode:
        self._check_open("a gain node")
        return GainNode(self, gain)

    def create_stereo_panner(self, pan: float = 0.0) -> StereoPannerNode:
        self._check_open("a stereo panner")
        return StereoPannerNode(self, pan)

    def create_panner(self) -> PannerNode:
        self._check_open("a panner")
        return PannerNode(self)

    def create_analyser(self, fft_size: int = DEFAULT_FFT_SIZE) -> AnalyserNode:
        self._check_open("an analyser")
        return AnalyserNode(self, fft_size)

    def __repr__(self) -> str:
        return f"AudioContext(sample_rate={self.sample_rate}, state={self._state.value}, t={self.current_time:.3f})"
