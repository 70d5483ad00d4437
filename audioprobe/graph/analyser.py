"""
AnalyserNode: a pass-through node that exposes snapshots of its input.

Each read covers the last ``fft_size`` frames up to the context's current
time, down-mixed to mono.  Frequency reads apply the platform's temporal
smoothing on linear magnitudes before the dB conversion:

    smoothed[k] = tau * previous[k] + (1 - tau) * |X[k]|

and, as on the platform, repeated reads within one render quantum return
the same snapshot rather than smoothing twice.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numpy as np

from ..spectral import (
    DEFAULT_MAX_DECIBELS,
    DEFAULT_MIN_DECIBELS,
    FrequencyFrame,
    magnitude_spectrum,
    to_byte_frequency_data,
    to_decibels,
    validate_fft_size,
)
from .nodes import AudioNode, _fit_channels

if TYPE_CHECKING:
    from .context import AudioContext

DEFAULT_FFT_SIZE = 2048
DEFAULT_SMOOTHING = 0.8


class AnalyserNode(AudioNode):
    def __init__(self, context: "AudioContext", fft_size: int = DEFAULT_FFT_SIZE) -> None:
        super().__init__(context)
        self._fft_size = validate_fft_size(fft_size)
        self._smoothing = DEFAULT_SMOOTHING
        self._min_db = DEFAULT_MIN_DECIBELS
        self._max_db = DEFAULT_MAX_DECIBELS
        self._previous = np.zeros(self._fft_size // 2, dtype=np.float64)
        self._snapshot_frame: Optional[int] = None
        self._snapshot_db: Optional[np.ndarray] = None

    # ── configuration ──
    @property
    def fft_size(self) -> int:
        return self._fft_size

    @fft_size.setter
    def fft_size(self, value: int) -> None:
        self._fft_size = validate_fft_size(value)
        self._previous = np.zeros(self._fft_size // 2, dtype=np.float64)
        self._snapshot_frame = None

    @property
    def frequency_bin_count(self) -> int:
        return self._fft_size // 2

    @property
    def smoothing_time_constant(self) -> float:
        return self._smoothing

    @smoothing_time_constant.setter
    def smoothing_time_constant(self, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"smoothing_time_constant must be in [0, 1], got {value!r}")
        self._smoothing = float(value)

    @property
    def min_decibels(self) -> float:
        return self._min_db

    @min_decibels.setter
    def min_decibels(self, value: float) -> None:
        if not value < self._max_db:
            raise ValueError(f"min_decibels must be below max_decibels ({self._max_db}), got {value!r}")
        self._min_db = float(value)

    @property
    def max_decibels(self) -> float:
        return self._max_db

    @max_decibels.setter
    def max_decibels(self, value: float) -> None:
        if not value > self._min_db:
            raise ValueError(f"max_decibels must be above min_decibels ({self._min_db}), got {value!r}")
        self._max_db = float(value)

    # ── snapshots ──
    def _window(self) -> np.ndarray:
        end = self.context.current_frame
        block = self._mix_inputs(end - self._fft_size, self._fft_size)
        return _fit_channels(block, 1)[0]

    def _decibels(self) -> np.ndarray:
        frame = self.context.current_frame
        if self._snapshot_db is not None and self._snapshot_frame == frame:
            return self._snapshot_db
        mags = magnitude_spectrum(self._window(), self._fft_size)
        smoothed = self._smoothing * self._previous + (1.0 - self._smoothing) * mags
        self._previous = np.where(np.isfinite(smoothed), smoothed, 0.0)
        self._snapshot_db = to_decibels(smoothed)
        self._snapshot_frame = frame
        return self._snapshot_db

    def get_float_frequency_data(self) -> np.ndarray:
        """dB magnitude per bin (``frequency_bin_count`` float32 values)."""
        return self._decibels().copy()

    def get_byte_frequency_data(self) -> np.ndarray:
        """Magnitudes scaled into 0..255 between min_decibels and max_decibels."""
        return to_byte_frequency_data(self._decibels(), self._min_db, self._max_db)

    def get_float_time_domain_data(self) -> np.ndarray:
        """The raw analysis window (``fft_size`` float32 samples)."""
        return self._window().astype(np.float32)

    def get_frequency_frame(self) -> FrequencyFrame:
        """Frequency read-out wrapped with its sample rate and FFT size."""
        db = self.get_float_frequency_data()
        db.flags.writeable = False
        return FrequencyFrame(magnitudes=db, sample_rate=self.context.sample_rate, fft_size=self._fft_size)
