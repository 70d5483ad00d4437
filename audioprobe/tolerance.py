"""
Tolerance-based assertions for non-deterministic audio readings.

Rendered audio is sampled at wall-clock instants, so a single reading can
land on a transient.  Every comparison here uses one of three shapes:

  1. a declared tolerance (relative, absolute Hz, or dB);
  2. several readings spaced in time, passing if any / a majority pass;
  3. a trend (strictly increasing / decreasing), not an exact value.

The ``assert_*`` helpers raise ToleranceError (an AssertionError, so pytest
reports it as a plain failure) and record the outcome in a
MeasurementReport when one is given.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import math
import numbers
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Sequence, TypeVar, Union

from .errors import ToleranceError
from .reporting import MeasurementReport

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RELATIVE = 0.30
DEFAULT_SAMPLE_COUNT = 5
DEFAULT_INTERVAL_MS = 20


def within_relative(measured: float, expected: float, relative: float) -> bool:
    """|measured - expected| <= relative * |expected|; NaN never passes."""
    if math.isnan(measured) or math.isnan(expected):
        return False
    return abs(measured - expected) <= relative * abs(expected)


def within_absolute(measured: float, expected: float, tolerance: float) -> bool:
    if math.isnan(measured) or math.isnan(expected):
        return False
    return abs(measured - expected) <= tolerance


def _level_db(value: float) -> float:
    return 20.0 * math.log10(abs(value)) if value != 0 else float("-inf")


@dataclass(frozen=True)
class ToleranceSpec:
    """Declared acceptable deviation.  Every bound that is set must hold."""

    absolute_hz: Optional[float] = None
    relative: Optional[float] = None
    db: Optional[float] = None

    def check(
        self,
        measured: float,
        expected: float,
        *,
        measured_db: Optional[float] = None,
        expected_db: Optional[float] = None,
    ) -> bool:
        """Apply every declared bound.

        The dB bound compares *measured_db* with *expected_db* when both are
        given, otherwise the level ratio of *measured* to *expected*.
        """
        if self.absolute_hz is None and self.relative is None and self.db is None:
            raise ValueError("ToleranceSpec declares no bound")
        if self.absolute_hz is not None and not within_absolute(measured, expected, self.absolute_hz):
            return False
        if self.relative is not None and not within_relative(measured, expected, self.relative):
            return False
        if self.db is not None:
            if measured_db is None or expected_db is None:
                measured_db, expected_db = _level_db(measured), _level_db(expected)
            if math.isinf(measured_db) and math.isinf(expected_db) and measured_db == expected_db:
                return True
            if not abs(measured_db - expected_db) <= self.db:
                return False
        return True


async def wait_ms(ms: float) -> None:
    """Let the audio graph render for *ms* milliseconds of real time."""
    await asyncio.sleep(max(0.0, ms) / 1000.0)


async def sample_repeatedly(
    measure: Callable[[], Union[T, Awaitable[T]]],
    count: int = DEFAULT_SAMPLE_COUNT,
    interval_ms: float = DEFAULT_INTERVAL_MS,
) -> list[T]:
    """Take *count* readings, *interval_ms* apart.  *measure* may be sync or async."""
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count!r}")
    readings: list[T] = []
    for i in range(count):
        if i:
            await wait_ms(interval_ms)
        value = measure()
        if inspect.isawaitable(value):
            value = await value
        readings.append(value)
    return readings


def any_pass(values: Iterable[T], predicate: Callable[[T], bool]) -> bool:
    return any(predicate(v) for v in values)


def majority_pass(values: Iterable[T], predicate: Callable[[T], bool]) -> bool:
    """Strictly more than half of *values* satisfy *predicate*; empty never passes."""
    items = list(values)
    if not items:
        return False
    return sum(1 for v in items if predicate(v)) * 2 > len(items)


def is_increasing(values: Sequence[float], strict: bool = True) -> bool:
    pairs = zip(values, values[1:])
    if strict:
        return all(b > a for a, b in pairs)
    return all(b >= a for a, b in pairs)


def is_decreasing(values: Sequence[float], strict: bool = True) -> bool:
    pairs = zip(values, values[1:])
    if strict:
        return all(b < a for a, b in pairs)
    return all(b <= a for a, b in pairs)


def _outcome(
    report: Optional[MeasurementReport],
    name: str,
    passed: bool,
    measured,
    expected,
    tolerance,
    message: str,
) -> None:
    if report is not None:
        report.record(
            name,
            measured if isinstance(measured, numbers.Real) else float("nan"),
            passed,
            expected=expected,
            tolerance=tolerance,
            detail="" if passed else message,
        )
    if not passed:
        logger.debug("tolerance check %s failed: %s", name or "<unnamed>", message)
        raise ToleranceError(message, name=name, measured=measured, expected=expected)


def assert_frequency(
    measured: float,
    expected: float,
    relative: float = DEFAULT_RELATIVE,
    *,
    name: str = "frequency",
    report: Optional[MeasurementReport] = None,
) -> None:
    """Measured frequency must lie within ``relative`` of expected."""
    passed = within_relative(measured, expected, relative)
    msg = f"{name}: measured {measured:.2f} Hz, expected {expected:.2f} Hz ± {relative:.0%}"
    _outcome(report, name, passed, measured, expected, relative, msg)


def assert_within(
    measured: float,
    expected: float,
    bounds: ToleranceSpec,
    *,
    name: str = "value",
    report: Optional[MeasurementReport] = None,
) -> None:
    passed = bounds.check(measured, expected)
    msg = f"{name}: measured {measured!r}, expected {expected!r} within {bounds}"
    tol = bounds.relative if bounds.relative is not None else bounds.absolute_hz
    _outcome(report, name, passed, measured, expected, tol, msg)


def assert_any_sample(
    values: Sequence[T],
    predicate: Callable[[T], bool],
    *,
    name: str = "any-sample",
    report: Optional[MeasurementReport] = None,
) -> None:
    """At least one of the readings must satisfy *predicate*."""
    hits = sum(1 for v in values if predicate(v))
    msg = f"{name}: none of {len(values)} samples passed ({list(values)!r})"
    _outcome(report, name, hits > 0, float(hits), 1.0, None, msg)


def assert_majority(
    values: Sequence[T],
    predicate: Callable[[T], bool],
    *,
    name: str = "majority",
    report: Optional[MeasurementReport] = None,
) -> None:
    hits = sum(1 for v in values if predicate(v))
    passed = majority_pass(values, predicate)
    msg = f"{name}: only {hits} of {len(values)} samples passed"
    _outcome(report, name, passed, float(hits), len(values) / 2.0, None, msg)


def assert_increasing(
    values: Sequence[float],
    *,
    strict: bool = True,
    name: str = "increasing",
    report: Optional[MeasurementReport] = None,
) -> None:
    passed = is_increasing(values, strict)
    msg = f"{name}: readings are not {'strictly ' if strict else ''}increasing: {list(values)!r}"
    last = float(values[-1]) if len(values) else float("nan")
    _outcome(report, name, passed, last, None, None, msg)


def assert_decreasing(
    values: Sequence[float],
    *,
    strict: bool = True,
    name: str = "decreasing",
    report: Optional[MeasurementReport] = None,
) -> None:
    passed = is_decreasing(values, strict)
    msg = f"{name}: readings are not {'strictly ' if strict else ''}decreasing: {list(values)!r}"
    last = float(values[-1]) if len(values) else float("nan")
    _outcome(report, name, passed, last, None, None, msg)


def assert_true(
    condition: bool,
    *,
    name: str,
    measured: float = float("nan"),
    detail: str = "",
    report: Optional[MeasurementReport] = None,
) -> None:
    """Record a boolean check (silence, clipping, panning balance ...)."""
    msg = f"{name}: check failed{': ' + detail if detail else ''}"
    _outcome(report, name, bool(condition), measured, None, None, msg)
