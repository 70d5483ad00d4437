"""
Spectral analysis over time-domain sample windows.

The transform follows the platform analyser convention so that readings
line up with what a browser AnalyserNode reports for the same signal:

  1. Take the most recent ``fft_size`` samples (zero-padded at the front
     when the window is shorter).
  2. Apply a Blackman window (alpha = 0.16).
  3. Real FFT, keep ``fft_size / 2`` bins, magnitude = |X[k]| / fft_size.
  4. Convert to dB with 20·log10.  Zero magnitude is -inf, never NaN.

Bin k maps to ``k * sample_rate / fft_size`` Hz, i.e.
``k * sample_rate / (2 * bin_count)``.

Everything below the transform is a pure function over a snapshot.  The
query helpers accept either a FrequencyFrame or any 1-D array-like of dB
values and never raise for edge-case data; they return a sentinel
(0.0, False, True for "silent") instead.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

MIN_FFT_SIZE = 32
MAX_FFT_SIZE = 32768
BLACKMAN_ALPHA = 0.16
DEFAULT_SAMPLE_RATE = 44100
DEFAULT_MIN_DECIBELS = -100.0
DEFAULT_MAX_DECIBELS = -30.0

_FLOAT32_MAX = float(np.finfo(np.float32).max)


@dataclass(frozen=True)
class FrequencyFrame:
    """One spectral snapshot: dB magnitude per bin.

    Attributes:
        magnitudes: Read-only float32 array, ``fft_size // 2`` entries.
                    Entries are finite or -inf, never NaN.
        sample_rate: Sample rate of the analysed signal in Hz.
        fft_size: Transform window size (power of two).
    """
    magnitudes: np.ndarray
    sample_rate: int
    fft_size: int

    @property
    def bin_count(self) -> int:
        return len(self.magnitudes)

    @property
    def bin_width(self) -> float:
        return self.sample_rate / self.fft_size

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0

    def frequency_of(self, bin_index: int) -> float:
        return bin_index * self.bin_width

    def frequencies(self) -> np.ndarray:
        return np.arange(self.bin_count, dtype=np.float64) * self.bin_width

    def __len__(self) -> int:
        return self.bin_count

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return np.array(self.magnitudes)
        return np.array(self.magnitudes, dtype=dtype)


FrameLike = Union[FrequencyFrame, Sequence[float], np.ndarray]


def validate_fft_size(fft_size: int) -> int:
    """Return *fft_size* if it is a power of two in [32, 32768], else raise ValueError."""
    try:
        n = int(fft_size)
    except (TypeError, ValueError) as e:
        raise ValueError(f"fft_size must be an int, got {fft_size!r}") from e
    if n != fft_size or n < MIN_FFT_SIZE or n > MAX_FFT_SIZE or n & (n - 1):
        raise ValueError(
            f"fft_size must be a power of two in [{MIN_FFT_SIZE}, {MAX_FFT_SIZE}], got {fft_size!r}"
        )
    return n


def blackman_window(size: int, alpha: float = BLACKMAN_ALPHA) -> np.ndarray:
    """Periodic Blackman window as used by the platform analyser."""
    a0 = (1.0 - alpha) / 2.0
    a1 = 0.5
    a2 = alpha / 2.0
    n = np.arange(size, dtype=np.float64)
    return a0 - a1 * np.cos(2.0 * math.pi * n / size) + a2 * np.cos(4.0 * math.pi * n / size)


def _last_window(window, fft_size: int) -> np.ndarray:
    samples = np.asarray(window, dtype=np.float64).reshape(-1)
    if len(samples) >= fft_size:
        return samples[len(samples) - fft_size:]
    padded = np.zeros(fft_size, dtype=np.float64)
    if len(samples):
        padded[fft_size - len(samples):] = samples
    return padded


def magnitude_spectrum(window, fft_size: int) -> np.ndarray:
    """Linear magnitudes |X[k]| / fft_size for the last *fft_size* samples of *window*."""
    fft_size = validate_fft_size(fft_size)
    x = _last_window(window, fft_size)
    with np.errstate(all="ignore"):
        spectrum = np.fft.rfft(x * blackman_window(fft_size))
        mags = np.abs(spectrum[: fft_size // 2]) / fft_size
    return mags


def to_decibels(magnitudes) -> np.ndarray:
    """20·log10 of linear magnitudes; zero -> -inf, NaN -> -inf, +inf clamped to float32 max."""
    mags = np.asarray(magnitudes, dtype=np.float64)
    with np.errstate(all="ignore"):
        db = 20.0 * np.log10(mags)
    db[np.isnan(db)] = -np.inf
    db[db == np.inf] = _FLOAT32_MAX
    return db.astype(np.float32)


def transform(window, fft_size: int, sample_rate: int = DEFAULT_SAMPLE_RATE) -> FrequencyFrame:
    """Windowed FFT of *window* into a dB FrequencyFrame.

    Larger sizes resolve frequency more finely (8192-16384 for pitch work)
    at the cost of time resolution (2048 for responsiveness).
    """
    db = to_decibels(magnitude_spectrum(window, fft_size))
    db.flags.writeable = False
    return FrequencyFrame(magnitudes=db, sample_rate=sample_rate, fft_size=int(fft_size))


def bin_frequency(bin_index: int, sample_rate: float, fft_size: int) -> float:
    """Centre frequency of *bin_index* for a transform of *fft_size*."""
    return bin_index * sample_rate / fft_size


def _values(frame: FrameLike) -> np.ndarray:
    if isinstance(frame, FrequencyFrame):
        return frame.magnitudes.astype(np.float64)
    if frame is None:
        return np.zeros(0, dtype=np.float64)
    return np.asarray(frame, dtype=np.float64).reshape(-1)


def _sample_rate(frame: FrameLike, sample_rate: Optional[float]) -> Optional[float]:
    if sample_rate is None and isinstance(frame, FrequencyFrame):
        return frame.sample_rate
    return sample_rate


def find_dominant_frequency(frame: FrameLike, sample_rate: Optional[float] = None) -> float:
    """Frequency in Hz of the loudest bin.

    Ties go to the lowest bin index, so an all-equal frame (including all
    -inf) reports bin 0.  Empty frames and non-positive sample rates give 0.0.
    """
    values = _values(frame)
    sr = _sample_rate(frame, sample_rate)
    if values.size == 0 or sr is None or not math.isfinite(sr) or sr <= 0:
        return 0.0
    values = np.where(np.isnan(values), -np.inf, values)
    peak = int(np.argmax(values))
    return peak * sr / (2 * values.size)


def has_frequency(
    frame: FrameLike,
    target_hz: float,
    sample_rate: Optional[float] = None,
    tolerance_hz: float = 50.0,
    threshold_db: float = -60.0,
) -> bool:
    """True iff a bin within ``target_hz ± tolerance_hz`` reaches ``threshold_db``.

    A zero tolerance matches only the bin whose centre equals the target
    (up to float rounding of the bin mapping).  A negative tolerance is an
    empty window and never matches.  Targets above Nyquist never match.
    """
    values = _values(frame)
    sr = _sample_rate(frame, sample_rate)
    if values.size == 0 or sr is None:
        return False
    if not (math.isfinite(sr) and sr > 0 and math.isfinite(target_hz)):
        return False
    if math.isnan(tolerance_hz) or tolerance_hz < 0:
        return False
    if target_hz > sr / 2.0:
        return False

    bin_width = sr / (2 * values.size)
    freqs = np.arange(values.size, dtype=np.float64) * bin_width
    eps = 1e-9 * max(1.0, abs(target_hz), bin_width)
    in_window = np.abs(freqs - target_hz) <= tolerance_hz + eps
    if not in_window.any():
        return False
    return bool(np.any(values[in_window] >= threshold_db))


def calculate_rms(frame: FrameLike) -> float:
    """Root mean square over the finite entries of *frame*.

    Non-finite entries (-inf bins from true silence, stray inf/NaN) add
    nothing to the sum of squares but still count toward the length, so an
    all -inf frame and an empty frame both give exactly 0.0.  The sum is
    accumulated on values scaled by the peak, so huge inputs cannot
    overflow to inf.

    Works on any numeric sequence: on an analyser's time-domain read-out it
    is the signal's amplitude RMS.
    """
    values = _values(frame)
    if values.size == 0:
        return 0.0
    finite = np.where(np.isfinite(values), values, 0.0)
    peak = float(np.max(np.abs(finite)))
    if peak == 0.0:
        return 0.0
    scaled = finite / peak
    return peak * math.sqrt(float(np.mean(scaled * scaled)))


def is_silent(frame: FrameLike, threshold_db: float = -100.0) -> bool:
    """True iff every bin is strictly below ``threshold_db``.

    Empty and all -inf frames are silent.  0 dB is a loud bin in this
    convention, so an all-zero frame is silent only for a threshold above 0.
    """
    values = _values(frame)
    if values.size == 0:
        return True
    return bool(np.all(values < threshold_db))


def to_byte_frequency_data(
    frame: FrameLike,
    min_db: float = DEFAULT_MIN_DECIBELS,
    max_db: float = DEFAULT_MAX_DECIBELS,
) -> np.ndarray:
    """Scale dB values into 0..255 the way the platform analyser does."""
    if not max_db > min_db:
        raise ValueError(f"max_db must be greater than min_db, got min={min_db!r} max={max_db!r}")
    values = _values(frame)
    with np.errstate(all="ignore"):
        scaled = np.floor((values - min_db) * 255.0 / (max_db - min_db))
    scaled = np.nan_to_num(scaled, nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(scaled, 0, 255).astype(np.uint8)


def estimate_snr(frame: FrameLike) -> float:
    """Peak level minus the mean noise floor, in dB.

    The noise floor is the mean of the finite bins more than 10 dB under the
    peak.  Returns 0.0 when the frame has no finite peak or no floor bins.
    """
    values = _values(frame)
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return 0.0
    peak = float(np.max(finite))
    floor = finite[finite < peak - 10.0]
    if floor.size == 0:
        return 0.0
    return peak - float(np.mean(floor))


def detect_harmonics(
    frame: FrameLike,
    fundamental_hz: float,
    sample_rate: Optional[float] = None,
    count: int = 3,
    tolerance_hz: Optional[float] = None,
    threshold_db: float = -70.0,
) -> list[bool]:
    """Presence of the fundamental and its first ``count - 1`` overtones.

    Without an explicit tolerance the search window widens with the
    harmonic number (50 Hz per harmonic).
    """
    found = []
    for h in range(1, count + 1):
        tol = tolerance_hz if tolerance_hz is not None else 50.0 * h
        found.append(has_frequency(frame, fundamental_hz * h, sample_rate, tol, threshold_db))
    return found
