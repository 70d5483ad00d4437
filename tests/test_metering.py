"""Tests for sample-domain metering in audioprobe.metering."""
import math

import numpy as np
import pytest

from audioprobe.buffer import SampleBuffer
from audioprobe.metering import (
    clipped_sample_count,
    clipping_ratio,
    dc_offset,
    dynamic_range_db,
    expected_max_step,
    find_discontinuities,
    max_sample_jump,
    non_finite_count,
    peak_amplitude,
    peak_dbfs,
    rms_dbfs,
    sample_rms,
)
from audioprobe.signals import generate_dc_tone, generate_silence, generate_tone


# ─── Levels ──────────────────────────────────────────────────────

class TestLevels:
    def test_peak_of_tone(self) -> None:
        assert peak_amplitude(generate_tone(44100, 441.0, 0.1, amplitude=0.5)) == pytest.approx(0.5, abs=1e-6)

    def test_peak_dbfs_full_scale(self) -> None:
        assert peak_dbfs(generate_tone(44100, 441.0, 0.1)) == pytest.approx(0.0, abs=1e-4)

    def test_silence_levels(self) -> None:
        silent = generate_silence(44100, 0.1)
        assert peak_amplitude(silent) == 0.0
        assert sample_rms(silent) == 0.0
        assert peak_dbfs(silent) == -math.inf
        assert rms_dbfs(silent) == -math.inf

    def test_empty_levels(self) -> None:
        empty = generate_tone(44100, 440.0, 0.0)
        assert peak_amplitude(empty) == 0.0
        assert sample_rms(empty) == 0.0

    def test_rms_dbfs_of_sine(self) -> None:
        assert rms_dbfs(generate_tone(44100, 441.0, 1.0)) == pytest.approx(-3.0103, abs=1e-3)

    @pytest.mark.parametrize("amps", [(0.1, 0.2, 0.4), (0.25, 0.5, 1.0), (0.01, 0.5, 2.0)])
    def test_rms_is_monotonic_in_amplitude(self, amps) -> None:
        levels = [sample_rms(generate_tone(44100, 440.0, 0.2, amplitude=a)) for a in amps]
        assert levels[0] < levels[1] < levels[2]

    def test_non_finite_samples_ignored_by_peak(self) -> None:
        buf = SampleBuffer.from_channels([[0.25, math.nan, -0.5, math.inf]], 8000)
        assert peak_amplitude(buf) == 0.5
        assert non_finite_count(buf) == 2

    def test_plain_arrays(self) -> None:
        assert peak_amplitude(np.array([0.0, -0.75, 0.5])) == 0.75


# ─── Clipping ────────────────────────────────────────────────────

class TestClipping:
    def test_hot_tone_clips(self) -> None:
        """Amplitude 2.0 pushes well over 1% of samples past 0.99."""
        assert clipping_ratio(generate_tone(44100, 440.0, 1.0, amplitude=2.0)) >= 0.01

    def test_clean_tone_does_not_clip(self) -> None:
        assert clipping_ratio(generate_tone(44100, 440.0, 1.0, amplitude=0.5)) == 0.0
        assert clipped_sample_count(generate_tone(44100, 440.0, 1.0, amplitude=0.5)) == 0

    def test_custom_level(self) -> None:
        buf = SampleBuffer.from_channels([[0.1, 0.6, -0.7, 0.2]], 8000)
        assert clipped_sample_count(buf, level=0.5) == 2
        assert clipping_ratio(buf, level=0.5) == 0.5

    def test_empty(self) -> None:
        assert clipping_ratio(generate_silence(44100, 0.0)) == 0.0

    def test_pools_channels(self) -> None:
        buf = SampleBuffer.from_channels([[1.0, 0.0], [0.0, 0.0]], 8000)
        assert clipping_ratio(buf) == 0.25


# ─── DC / discontinuities ────────────────────────────────────────

class TestIntegrity:
    def test_dc_offset_detected(self) -> None:
        buf = generate_dc_tone(44100, 441.0, 1.0, amplitude=0.3, dc_offset=0.15)
        assert dc_offset(buf) == pytest.approx(0.15, abs=1e-4)

    def test_clean_tone_has_no_dc(self) -> None:
        assert abs(dc_offset(generate_tone(44100, 441.0, 1.0))) < 1e-4

    def test_clean_tone_steps_within_bound(self) -> None:
        tone = generate_tone(44100, 1000.0, 0.1, amplitude=0.8)
        bound = expected_max_step(1000.0, 44100, 0.8)
        assert max_sample_jump(tone) <= bound + 1e-6
        assert find_discontinuities(tone, bound + 1e-6) == []

    def test_click_is_located(self) -> None:
        data = generate_tone(44100, 200.0, 0.05, amplitude=0.2).channel(0).copy()
        data[1000] += 0.9
        buf = SampleBuffer.from_channels([data], 44100)
        bound = expected_max_step(200.0, 44100, 0.2)
        assert find_discontinuities(buf, bound * 2) == [1000, 1001]
        assert max_sample_jump(buf) > 0.8

    def test_short_input(self) -> None:
        assert max_sample_jump(np.array([0.5])) == 0.0
        assert find_discontinuities(np.array([]), 0.1) == []

    def test_expected_step_degenerate_rate(self) -> None:
        assert expected_max_step(440.0, 0) == 0.0


class TestDynamicRange:
    def test_six_db_per_halving(self) -> None:
        loud = generate_tone(44100, 441.0, 0.5, amplitude=0.8)
        soft = generate_tone(44100, 441.0, 0.5, amplitude=0.4)
        assert dynamic_range_db(loud, soft) == pytest.approx(6.0206, abs=1e-3)

    def test_soft_silence_is_infinite(self) -> None:
        loud = generate_tone(44100, 441.0, 0.5)
        assert dynamic_range_db(loud, generate_silence(44100, 0.5)) == math.inf

    def test_both_silent(self) -> None:
        silent = generate_silence(44100, 0.5)
        assert dynamic_range_db(silent, silent) == 0.0
