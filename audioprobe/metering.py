"""
Sample-domain metering: levels and integrity checks on raw float samples.

These operate on a SampleBuffer (all channels pooled unless stated
otherwise) or on any 1-D float array, e.g. an analyser's time-domain
read-out.  Like the spectral helpers they are pure and return sentinels
for empty input:

  * peak / RMS of nothing          -> 0.0
  * dBFS of silence or nothing     -> -inf
  * clipping ratio of nothing      -> 0.0
"""
from __future__ import annotations

import math
from typing import Union

import numpy as np

from .buffer import SampleBuffer
from .spectral import calculate_rms

SamplesLike = Union[SampleBuffer, np.ndarray, list]

DEFAULT_CLIP_LEVEL = 0.99


def _pooled(samples: SamplesLike) -> np.ndarray:
    if isinstance(samples, SampleBuffer):
        if samples.sample_count == 0:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate(samples.channels).astype(np.float64)
    return np.asarray(samples, dtype=np.float64).reshape(-1)


def _first_channel(samples: SamplesLike) -> np.ndarray:
    if isinstance(samples, SampleBuffer):
        return samples.channels[0].astype(np.float64)
    return np.asarray(samples, dtype=np.float64).reshape(-1)


def peak_amplitude(samples: SamplesLike) -> float:
    """Largest finite |sample|."""
    arr = _pooled(samples)
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return 0.0
    return float(np.max(np.abs(finite)))


def sample_rms(samples: SamplesLike) -> float:
    """Amplitude RMS; non-finite samples count as zero."""
    return calculate_rms(_pooled(samples))


def _to_dbfs(level: float) -> float:
    if level <= 0.0:
        return float("-inf")
    return 20.0 * math.log10(level)


def peak_dbfs(samples: SamplesLike) -> float:
    """Peak level in dBFS.  0 dBFS = full scale, silence → −∞."""
    return _to_dbfs(peak_amplitude(samples))


def rms_dbfs(samples: SamplesLike) -> float:
    """RMS level in dBFS."""
    return _to_dbfs(sample_rms(samples))


def clipped_sample_count(samples: SamplesLike, level: float = DEFAULT_CLIP_LEVEL) -> int:
    """Number of samples whose magnitude reaches *level*."""
    arr = _pooled(samples)
    with np.errstate(invalid="ignore"):
        return int(np.count_nonzero(np.abs(arr) >= level))


def clipping_ratio(samples: SamplesLike, level: float = DEFAULT_CLIP_LEVEL) -> float:
    """Fraction (0..1) of samples whose magnitude reaches *level*."""
    arr = _pooled(samples)
    if arr.size == 0:
        return 0.0
    return clipped_sample_count(arr, level) / arr.size


def dc_offset(samples: SamplesLike) -> float:
    """Mean of the finite samples, i.e. the constant bias of the signal."""
    arr = _pooled(samples)
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return 0.0
    return float(np.mean(finite))


def non_finite_count(samples: SamplesLike) -> int:
    """Number of NaN / ±inf samples (non-finite generator input leaks through here)."""
    arr = _pooled(samples)
    return int(arr.size - np.count_nonzero(np.isfinite(arr)))


def max_sample_jump(samples: SamplesLike) -> float:
    """Largest absolute step between adjacent samples of the first channel."""
    arr = _first_channel(samples)
    if arr.size < 2:
        return 0.0
    with np.errstate(invalid="ignore"):
        steps = np.abs(np.diff(arr))
    steps = steps[np.isfinite(steps)]
    if steps.size == 0:
        return 0.0
    return float(np.max(steps))


def expected_max_step(frequency: float, sample_rate: int, amplitude: float = 1.0) -> float:
    """Upper bound on the adjacent-sample step of a clean sine.

    |sin(a + d) - sin(a)| <= 2·|sin(d / 2)| with d = 2π·f / sr.
    """
    if sample_rate <= 0:
        return 0.0
    return 2.0 * abs(amplitude) * abs(math.sin(math.pi * frequency / sample_rate))


def find_discontinuities(samples: SamplesLike, threshold: float) -> list[int]:
    """Indices i where |x[i] - x[i-1]| exceeds *threshold* (first channel)."""
    arr = _first_channel(samples)
    if arr.size < 2:
        return []
    with np.errstate(invalid="ignore"):
        steps = np.abs(np.diff(arr))
    return [int(i) + 1 for i in np.flatnonzero(steps > threshold)]


def dynamic_range_db(loud: SamplesLike, soft: SamplesLike) -> float:
    """RMS level difference loud − soft in dB; inf when *soft* is silent."""
    loud_db = rms_dbfs(loud)
    soft_db = rms_dbfs(soft)
    if math.isinf(loud_db) and math.isinf(soft_db):
        return 0.0
    return loud_db - soft_db
