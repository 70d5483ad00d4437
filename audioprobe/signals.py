"""
Deterministic test-signal generation.

Every generator computes in float64 and narrows to float32 when the
SampleBuffer is built.  No dithering, no noise shaping: the same arguments
always give the same samples, which is what lets tests check sample values
against the closed-form formula exactly.

Degenerate arguments never raise:
  * duration <= 0 (or non-finite)  -> zero-length buffer
  * frequency 0                   -> constant output (sin(0) == 0)
  * negative frequency            -> sign-reversed sine
  * frequency above Nyquist       -> aliased sine, left uncorrected
  * NaN / inf frequency           -> non-finite samples, caller validates
"""
from __future__ import annotations

import math

import numpy as np

from .buffer import SampleBuffer


def sample_count_for(duration: float, sample_rate: int) -> int:
    """Samples needed for *duration* seconds, rounded half-up; 0 when degenerate."""
    if not math.isfinite(duration) or duration <= 0:
        return 0
    return int(math.floor(duration * sample_rate + 0.5))


def _check_layout(sample_rate: int, channels: int) -> None:
    if sample_rate <= 0 or channels < 1:
        raise ValueError(f"Invalid buffer layout: sample_rate={sample_rate!r} channels={channels!r}")


def _sine(sample_rate: int, frequency: float, n: int) -> np.ndarray:
    idx = np.arange(n, dtype=np.float64)
    with np.errstate(all="ignore"):
        return np.sin(2.0 * math.pi * frequency * idx / sample_rate)


def generate_tone(
    sample_rate: int,
    frequency: float,
    duration: float,
    amplitude: float = 1.0,
    channels: int = 1,
) -> SampleBuffer:
    """Sine tone: sample i = amplitude * sin(2π · frequency · i / sample_rate).

    Every channel carries the same samples.  Amplitudes above 1.0 are kept
    as-is (clipping scenarios rely on it).
    """
    _check_layout(sample_rate, channels)
    n = sample_count_for(duration, sample_rate)
    with np.errstate(all="ignore"):
        data = amplitude * _sine(sample_rate, frequency, n)
    return SampleBuffer(channels=tuple(data for _ in range(channels)), sample_rate=sample_rate)


def generate_silence(sample_rate: int, duration: float, channels: int = 1) -> SampleBuffer:
    """Buffer where every sample is exactly 0.0."""
    _check_layout(sample_rate, channels)
    n = sample_count_for(duration, sample_rate)
    zeros = np.zeros(n, dtype=np.float32)
    return SampleBuffer(channels=tuple(zeros for _ in range(channels)), sample_rate=sample_rate)


def generate_dc_tone(
    sample_rate: int,
    frequency: float,
    duration: float,
    amplitude: float = 0.5,
    dc_offset: float = 0.2,
    channels: int = 1,
) -> SampleBuffer:
    """Sine tone with a constant bias added to every sample."""
    _check_layout(sample_rate, channels)
    n = sample_count_for(duration, sample_rate)
    with np.errstate(all="ignore"):
        data = amplitude * _sine(sample_rate, frequency, n) + dc_offset
    return SampleBuffer(channels=tuple(data for _ in range(channels)), sample_rate=sample_rate)


def generate_stereo_tone(
    sample_rate: int,
    frequency: float,
    duration: float,
    left: float = 1.0,
    right: float = 1.0,
) -> SampleBuffer:
    """Two-channel sine with independent left/right amplitudes."""
    _check_layout(sample_rate, 2)
    n = sample_count_for(duration, sample_rate)
    base = _sine(sample_rate, frequency, n)
    with np.errstate(all="ignore"):
        return SampleBuffer(channels=(left * base, right * base), sample_rate=sample_rate)
