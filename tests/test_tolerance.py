"""Tests for tolerance helpers and assertions in audioprobe.tolerance."""
import asyncio
import math
import time

import pytest

from audioprobe.errors import ToleranceError
from audioprobe.reporting import MeasurementReport
from audioprobe.tolerance import (
    ToleranceSpec,
    any_pass,
    assert_any_sample,
    assert_decreasing,
    assert_frequency,
    assert_increasing,
    assert_majority,
    assert_true,
    assert_within,
    is_decreasing,
    is_increasing,
    majority_pass,
    sample_repeatedly,
    wait_ms,
    within_absolute,
    within_relative,
)


class TestComparisons:
    @pytest.mark.parametrize("measured,ok", [
        (440.0, True),
        (309.0, True),
        (571.0, True),
        (307.9, False),
        (572.1, False),
        (math.nan, False),
    ])
    def test_within_relative(self, measured: float, ok: bool) -> None:
        assert within_relative(measured, 440.0, 0.30) is ok

    def test_within_absolute(self) -> None:
        assert within_absolute(445.0, 440.0, 5.0)
        assert not within_absolute(446.0, 440.0, 5.0)

    def test_all_bounds_must_hold(self) -> None:
        bounds = ToleranceSpec(absolute_hz=20.0, relative=0.1)
        assert bounds.check(450.0, 440.0)
        assert not bounds.check(470.0, 440.0)

    def test_db_bound(self) -> None:
        bounds = ToleranceSpec(db=1.0)
        assert bounds.check(1.1, 1.0)
        assert not bounds.check(0.5, 1.0)
        assert bounds.check(0.0, 0.0, measured_db=-40.5, expected_db=-40.0)

    def test_needs_a_bound(self) -> None:
        with pytest.raises(ValueError):
            ToleranceSpec().check(1.0, 1.0)


class TestSampling:
    def test_any_and_majority(self) -> None:
        values = [1, 5, 6, 7]
        assert any_pass(values, lambda v: v == 1)
        assert majority_pass(values, lambda v: v > 4)
        assert not majority_pass(values, lambda v: v > 5)
        assert not majority_pass([], lambda v: True)

    def test_trends(self) -> None:
        assert is_increasing([1.0, 2.0, 3.0])
        assert not is_increasing([1.0, 1.0, 3.0])
        assert is_increasing([1.0, 1.0, 3.0], strict=False)
        assert is_decreasing([3.0, 2.0, -1.0])
        assert is_increasing([]) and is_decreasing([5.0])

    def test_sample_repeatedly_spacing(self) -> None:
        stamps = []

        async def _inner():
            return await sample_repeatedly(lambda: stamps.append(time.monotonic()) or len(stamps), 3, 20)

        readings = asyncio.run(_inner())
        assert readings == [1, 2, 3]
        assert stamps[-1] - stamps[0] >= 0.035

    def test_sample_repeatedly_async_measure(self) -> None:
        async def measure():
            await asyncio.sleep(0)
            return 7

        assert asyncio.run(sample_repeatedly(measure, 2, 0)) == [7, 7]

    def test_sample_repeatedly_needs_count(self) -> None:
        with pytest.raises(ValueError):
            asyncio.run(sample_repeatedly(lambda: 0, 0))

    def test_wait_ms_negative_is_immediate(self) -> None:
        asyncio.run(wait_ms(-10))


class TestAssertions:
    def test_frequency_passes_and_records(self) -> None:
        report = MeasurementReport()
        assert_frequency(430.0, 440.0, report=report)
        assert report.passed == 1

    def test_frequency_failure_is_assertion_error(self) -> None:
        report = MeasurementReport()
        with pytest.raises(AssertionError) as exc:
            assert_frequency(880.0, 440.0, 0.3, report=report)
        assert isinstance(exc.value, ToleranceError)
        assert exc.value.measured == 880.0
        assert "880.00" in str(exc.value)
        assert report.failed == 1

    def test_any_sample(self) -> None:
        assert_any_sample([0.0, 430.0, 0.0], lambda hz: within_relative(hz, 440.0, 0.3))
        with pytest.raises(ToleranceError):
            assert_any_sample([0.0, 0.0], lambda hz: hz > 0)

    def test_majority(self) -> None:
        assert_majority([1, 1, 0], lambda v: v == 1)
        with pytest.raises(ToleranceError):
            assert_majority([1, 0, 0, 1], lambda v: v == 1)

    def test_trend_assertions(self) -> None:
        assert_increasing([0.1, 0.2, 0.4])
        assert_decreasing([0.4, 0.2, 0.1])
        with pytest.raises(ToleranceError):
            assert_increasing([0.1, 0.1])
        with pytest.raises(ToleranceError):
            assert_decreasing([0.1, 0.2])

    def test_within(self) -> None:
        assert_within(441.0, 440.0, ToleranceSpec(absolute_hz=2.0))
        with pytest.raises(ToleranceError):
            assert_within(450.0, 440.0, ToleranceSpec(absolute_hz=2.0))

    def test_assert_true(self) -> None:
        report = MeasurementReport()
        assert_true(True, name="ok", report=report)
        with pytest.raises(ToleranceError):
            assert_true(False, name="bad", detail="clipped", report=report)
        assert [m.name for m in report.failures] == ["bad"]
