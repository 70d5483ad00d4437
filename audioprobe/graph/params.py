"""
Automatable node parameters.

An AudioParam holds a default value plus a time-ordered list of automation
events.  Values are evaluated per sample frame (a-rate), so a gain fade or
a pan sweep is sample-accurate in rendered output:

  set_value_at_time(v, t)               -> step to v at t
  linear_ramp_to_value_at_time(v, t)    -> straight line from previous event
  exponential_ramp_to_value_at_time(v, t)
                                        -> geometric curve from previous event

Before the first event the default value holds; after the last event its
value holds.  Results are clamped to the param's nominal range.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .context import AudioContext

_SET = "set"
_LINEAR = "linear"
_EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class _Event:
    time: float
    kind: str
    value: float


def _check_time(t: float) -> float:
    if not math.isfinite(t) or t < 0:
        raise ValueError(f"Automation time must be finite and >= 0, got {t!r}")
    return float(t)


def _check_value(v: float) -> float:
    if not math.isfinite(v):
        raise ValueError(f"Param value must be finite, got {v!r}")
    return float(v)


class AudioParam:
    """Per-frame automatable value bound to an AudioContext clock."""

    def __init__(
        self,
        context: "AudioContext",
        default: float,
        *,
        min_value: float = -math.inf,
        max_value: float = math.inf,
        name: str = "",
    ) -> None:
        self._context = context
        self.name = name
        self.default_value = float(default)
        self.min_value = min_value
        self.max_value = max_value
        self._value = float(default)
        self._events: list[_Event] = []

    # ── scalar access ──
    @property
    def value(self) -> float:
        """Value at the context's current time."""
        if not self._events:
            return self._clamp_scalar(self._value)
        t = np.array([self._context.current_time], dtype=np.float64)
        return float(self.values_at(t)[0])

    @value.setter
    def value(self, v: float) -> None:
        v = _check_value(v)
        self._value = v
        if self._events:
            self.set_value_at_time(v, self._context.current_time)

    def _clamp_scalar(self, v: float) -> float:
        return min(max(v, self.min_value), self.max_value)

    # ── automation ──
    def _insert(self, event: _Event) -> "AudioParam":
        self._events.append(event)
        self._events.sort(key=lambda e: e.time)
        return self

    def set_value_at_time(self, value: float, start_time: float) -> "AudioParam":
        return self._insert(_Event(_check_time(start_time), _SET, _check_value(value)))

    def linear_ramp_to_value_at_time(self, value: float, end_time: float) -> "AudioParam":
        return self._insert(_Event(_check_time(end_time), _LINEAR, _check_value(value)))

    def exponential_ramp_to_value_at_time(self, value: float, end_time: float) -> "AudioParam":
        value = _check_value(value)
        if value == 0.0:
            raise ValueError("Exponential ramp target must be non-zero")
        return self._insert(_Event(_check_time(end_time), _EXPONENTIAL, value))

    def cancel_scheduled_values(self, cancel_time: float) -> "AudioParam":
        cancel_time = _check_time(cancel_time)
        self._events = [e for e in self._events if e.time < cancel_time]
        return self

    @property
    def has_automation(self) -> bool:
        return bool(self._events)

    # ── evaluation ──
    def values_at(self, times: np.ndarray) -> np.ndarray:
        """Vectorised evaluation at each time in *times* (seconds)."""
        times = np.asarray(times, dtype=np.float64)
        out = np.full(times.shape, self._value, dtype=np.float64)
        if not self._events:
            return np.clip(out, self.min_value, self.max_value)

        prev_time = 0.0
        prev_value = self._value
        for ev in self._events:
            if ev.kind == _SET:
                out[times >= ev.time] = ev.value
            else:
                span = ev.time - prev_time
                seg = (times >= prev_time) & (times < ev.time)
                if span > 0 and seg.any():
                    frac = (times[seg] - prev_time) / span
                    if ev.kind == _LINEAR:
                        out[seg] = prev_value + (ev.value - prev_value) * frac
                    elif prev_value != 0.0 and (prev_value > 0) == (ev.value > 0):
                        out[seg] = prev_value * (ev.value / prev_value) ** frac
                    else:
                        out[seg] = prev_value
                out[times >= ev.time] = ev.value
            prev_time = ev.time
            prev_value = ev.value
        return np.clip(out, self.min_value, self.max_value)

    def values_for_frames(self, start_frame: int, count: int) -> np.ndarray:
        """Per-frame values for frames [start_frame, start_frame + count)."""
        if count <= 0:
            return np.zeros(0, dtype=np.float64)
        if not self._events:
            return np.full(count, self._clamp_scalar(self._value), dtype=np.float64)
        frames = np.arange(start_frame, start_frame + count, dtype=np.float64)
        return self.values_at(frames / self._context.sample_rate)

    def __repr__(self) -> str:
        return f"AudioParam(name={self.name!r}, value={self._value!r}, events={len(self._events)})"
