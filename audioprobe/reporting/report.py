"""
Measurement bookkeeping for a verification run.

Every tolerance assertion can record its outcome here, so a run ends with
one summary line that says how many checks passed and which ones failed
with what reading:

  - measured vs. expected value and the tolerance applied
  - pass / fail counts and pass rate
  - wall-clock duration of the run
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Measurement:
    """One checked reading."""

    name: str
    measured: float
    expected: Optional[float]
    tolerance: Optional[float]
    passed: bool
    detail: str = ""

    def as_dict(self) -> dict:
        def _num(v):
            if v is None:
                return None
            v = float(v)
            # inf / nan are not valid JSON numbers
            return round(v, 4) if math.isfinite(v) else str(v)

        return {
            "name": self.name,
            "measured": _num(self.measured),
            "expected": _num(self.expected),
            "tolerance": _num(self.tolerance),
            "passed": self.passed,
            "detail": self.detail,
        }


@dataclass
class MeasurementReport:
    """Per-run collection of measurements."""

    run_id: str = ""
    start_time: float = field(default_factory=time.monotonic)
    end_time: float = 0.0
    measurements: List[Measurement] = field(default_factory=list)
    artifacts: List[str] = field(default_factory=list)

    def record(
        self,
        name: str,
        measured: float,
        passed: bool,
        expected: Optional[float] = None,
        tolerance: Optional[float] = None,
        detail: str = "",
    ) -> Measurement:
        m = Measurement(name, measured, expected, tolerance, bool(passed), detail)
        self.measurements.append(m)
        if not m.passed:
            logger.warning(
                "Check failed: %s measured=%s expected=%s tolerance=%s %s",
                name, measured, expected, tolerance, detail,
            )
        return m

    def add_artifact(self, path) -> None:
        self.artifacts.append(str(path))

    @property
    def passed(self) -> int:
        return sum(1 for m in self.measurements if m.passed)

    @property
    def failed(self) -> int:
        return len(self.measurements) - self.passed

    @property
    def failures(self) -> List[Measurement]:
        return [m for m in self.measurements if not m.passed]

    @property
    def pass_rate(self) -> float:
        total = len(self.measurements)
        return (self.passed / total * 100.0) if total > 0 else 0.0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def duration_s(self) -> float:
        end = self.end_time if self.end_time > 0 else time.monotonic()
        return end - self.start_time

    def finalize(self) -> None:
        self.end_time = time.monotonic()

    def summary(self) -> dict:
        return {
            "run_id": self.run_id,
            "duration_s": round(self.duration_s, 2),
            "checks": len(self.measurements),
            "passed": self.passed,
            "failed": self.failed,
            "pass_rate": round(self.pass_rate, 1),
            "failures": [m.name for m in self.failures],
            "artifacts": list(self.artifacts),
        }

    def log_summary(self) -> None:
        s = self.summary()
        logger.info(
            "PROBE_REPORT: run=%s dur=%.2fs checks=%d passed=%d failed=%d pass_rate=%.0f%% artifacts=%d",
            s["run_id"], s["duration_s"], s["checks"], s["passed"], s["failed"],
            s["pass_rate"], len(s["artifacts"]),
        )
        for m in self.failures:
            logger.info("PROBE_FAILURE: %s", m.as_dict())
