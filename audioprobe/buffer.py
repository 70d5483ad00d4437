"""
Sample buffer primitive.

A SampleBuffer is the unit every other part of the harness passes around:
the generator produces it, the WAV encoder serialises it, and the audio
graph plays it.  Pure data container with no timing or I/O.

Samples are float32, nominally in [-1.0, 1.0].  Out-of-range values are
legal here; they are clamped only when encoded.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np


def _freeze(samples) -> np.ndarray:
    with np.errstate(over="ignore", invalid="ignore"):
        arr = np.array(samples, dtype=np.float32, copy=True).reshape(-1)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class SampleBuffer:
    """Immutable multi-channel float32 sample buffer.

    Attributes:
        channels: One read-only float32 array per channel, all equal length.
        sample_rate: Sample rate in Hz (> 0).
    """
    channels: tuple[np.ndarray, ...]
    sample_rate: int

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be > 0, got {self.sample_rate!r}")
        if not self.channels:
            raise ValueError("SampleBuffer needs at least one channel")
        frozen = tuple(_freeze(ch) for ch in self.channels)
        lengths = {len(ch) for ch in frozen}
        if len(lengths) != 1:
            raise ValueError(f"All channels must have equal length, got {sorted(lengths)}")
        object.__setattr__(self, "channels", frozen)

    @classmethod
    def from_channels(cls, channels: Iterable[Sequence[float]], sample_rate: int) -> "SampleBuffer":
        """Build a buffer from plain per-channel sample sequences."""
        return cls(channels=tuple(channels), sample_rate=sample_rate)

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def sample_count(self) -> int:
        return len(self.channels[0])

    @property
    def duration(self) -> float:
        return self.sample_count / self.sample_rate

    def channel(self, index: int) -> np.ndarray:
        return self.channels[index]

    def mix_down(self) -> np.ndarray:
        """Average all channels into one float64 array."""
        if self.channel_count == 1:
            return self.channels[0].astype(np.float64)
        return np.mean(np.stack(self.channels).astype(np.float64), axis=0)

    def as_array(self) -> np.ndarray:
        """Return a (channels, samples) float32 view-copy of the data."""
        return np.stack(self.channels)

    def __len__(self) -> int:
        return self.sample_count
