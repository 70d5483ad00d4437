"""Tests for deterministic signal generation in audioprobe.signals."""
import math

import numpy as np
import pytest

from audioprobe.buffer import SampleBuffer
from audioprobe.signals import (
    generate_dc_tone,
    generate_silence,
    generate_stereo_tone,
    generate_tone,
    sample_count_for,
)


# ─── sample_count_for ────────────────────────────────────────────

class TestSampleCount:
    @pytest.mark.parametrize("duration,sr,expected", [
        (1.0, 44100, 44100),
        (0.5, 48000, 24000),
        (0.1, 44100, 4410),
        (1 / 3, 3, 1),
        (0.0, 44100, 0),
        (-1.0, 44100, 0),
    ])
    def test_counts(self, duration: float, sr: int, expected: int) -> None:
        assert sample_count_for(duration, sr) == expected

    @pytest.mark.parametrize("duration", [math.nan, math.inf, -math.inf])
    def test_non_finite_duration_is_empty(self, duration: float) -> None:
        assert sample_count_for(duration, 44100) == 0


# ─── generate_tone ───────────────────────────────────────────────

class TestGenerateTone:
    def test_length_and_rate(self) -> None:
        buf = generate_tone(44100, 440.0, 1.0)
        assert buf.sample_count == 44100
        assert buf.channel_count == 1
        assert buf.sample_rate == 44100
        assert buf.duration == pytest.approx(1.0)

    def test_samples_follow_formula(self) -> None:
        buf = generate_tone(44100, 440.0, 0.01, amplitude=0.8)
        data = buf.channel(0)
        for i in (0, 1, 17, 100, 440):
            expected = 0.8 * math.sin(2 * math.pi * 440.0 * i / 44100)
            assert float(data[i]) == pytest.approx(expected, abs=1e-7)

    def test_samples_are_float32(self) -> None:
        buf = generate_tone(8000, 1000.0, 0.1)
        assert buf.channel(0).dtype == np.float32

    def test_deterministic(self) -> None:
        a = generate_tone(44100, 997.0, 0.2, amplitude=0.3)
        b = generate_tone(44100, 997.0, 0.2, amplitude=0.3)
        assert np.array_equal(a.channel(0), b.channel(0))

    def test_all_channels_identical(self) -> None:
        buf = generate_tone(44100, 440.0, 0.05, channels=3)
        assert buf.channel_count == 3
        assert np.array_equal(buf.channel(0), buf.channel(1))
        assert np.array_equal(buf.channel(0), buf.channel(2))

    @pytest.mark.parametrize("duration", [0.0, -0.5, math.nan])
    def test_degenerate_duration_gives_empty_buffer(self, duration: float) -> None:
        buf = generate_tone(44100, 440.0, duration)
        assert buf.sample_count == 0
        assert buf.duration == 0.0

    def test_zero_frequency_is_silent(self) -> None:
        buf = generate_tone(44100, 0.0, 0.1)
        assert np.all(buf.channel(0) == 0.0)

    def test_negative_frequency_is_sign_reversed(self) -> None:
        pos = generate_tone(44100, 440.0, 0.05)
        neg = generate_tone(44100, -440.0, 0.05)
        assert np.allclose(neg.channel(0), -pos.channel(0))

    def test_above_nyquist_does_not_raise(self) -> None:
        buf = generate_tone(8000, 6000.0, 0.1)
        assert buf.sample_count == 800
        assert np.all(np.isfinite(buf.channel(0)))

    @pytest.mark.parametrize("freq", [math.nan, math.inf])
    def test_non_finite_frequency_does_not_raise(self, freq: float) -> None:
        buf = generate_tone(44100, freq, 0.01)
        assert buf.sample_count == 441
        assert not np.all(np.isfinite(buf.channel(0)))

    def test_amplitude_above_one_is_kept(self) -> None:
        buf = generate_tone(44100, 440.0, 0.1, amplitude=2.0)
        assert float(np.max(np.abs(buf.channel(0)))) > 1.9

    @pytest.mark.parametrize("sr,channels", [(0, 1), (-44100, 1), (44100, 0)])
    def test_invalid_layout_raises(self, sr: int, channels: int) -> None:
        with pytest.raises(ValueError):
            generate_tone(sr, 440.0, 1.0, channels=channels)


# ─── generate_silence ────────────────────────────────────────────

class TestGenerateSilence:
    def test_every_sample_is_zero(self) -> None:
        buf = generate_silence(44100, 0.5, channels=2)
        assert buf.sample_count == 22050
        assert buf.channel_count == 2
        for ch in buf.channels:
            assert np.all(ch == 0.0)

    def test_zero_duration(self) -> None:
        assert generate_silence(44100, 0.0).sample_count == 0


# ─── DC / stereo variants ────────────────────────────────────────

class TestVariants:
    def test_dc_tone_mean_is_offset(self) -> None:
        buf = generate_dc_tone(44100, 441.0, 1.0, amplitude=0.5, dc_offset=0.2)
        assert float(np.mean(buf.channel(0))) == pytest.approx(0.2, abs=1e-4)

    def test_stereo_tone_independent_channels(self) -> None:
        buf = generate_stereo_tone(44100, 440.0, 0.1, left=1.0, right=0.0)
        assert buf.channel_count == 2
        assert float(np.max(np.abs(buf.channel(0)))) > 0.9
        assert np.all(buf.channel(1) == 0.0)

    def test_stereo_tone_amplitude_ratio(self) -> None:
        buf = generate_stereo_tone(44100, 440.0, 0.1, left=0.5, right=0.25)
        left = buf.channel(0).astype(np.float64)
        right = buf.channel(1).astype(np.float64)
        assert np.allclose(right * 2.0, left, atol=1e-6)


# ─── SampleBuffer ────────────────────────────────────────────────

class TestSampleBuffer:
    def test_manual_fill(self) -> None:
        buf = SampleBuffer.from_channels([[0.0, 0.5, -0.5]], 8000)
        assert buf.sample_count == 3
        assert buf.channel(0)[1] == np.float32(0.5)

    def test_unequal_channels_rejected(self) -> None:
        with pytest.raises(ValueError):
            SampleBuffer.from_channels([[0.0, 1.0], [0.0]], 8000)

    def test_no_channels_rejected(self) -> None:
        with pytest.raises(ValueError):
            SampleBuffer(channels=(), sample_rate=8000)

    def test_bad_rate_rejected(self) -> None:
        with pytest.raises(ValueError):
            SampleBuffer.from_channels([[0.0]], 0)

    def test_immutable(self) -> None:
        buf = generate_tone(8000, 440.0, 0.01)
        with pytest.raises(ValueError):
            buf.channel(0)[0] = 1.0

    def test_source_array_is_copied(self) -> None:
        src = np.zeros(4, dtype=np.float32)
        buf = SampleBuffer.from_channels([src], 8000)
        src[0] = 1.0
        assert buf.channel(0)[0] == 0.0

    def test_mix_down(self) -> None:
        buf = SampleBuffer.from_channels([[1.0, 0.0], [0.0, 1.0]], 8000)
        assert np.allclose(buf.mix_down(), [0.5, 0.5])
