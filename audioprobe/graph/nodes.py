"""
Audio graph nodes.

Rendering is pull-based and lazy: nothing runs in the background.  When a
consumer (an analyser read, or ``capture``) asks a node for frames
[start, start + n), the node asks its inputs for the same span, mixes
them, and applies its own processing.  Every node output is a function of
absolute frame index only, so repeated reads of the same span agree.

Channel mixing follows the speaker rules: mono inputs up-mix to stereo by
copying, stereo inputs down-mix to mono by averaging.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional

import numpy as np

from ..buffer import SampleBuffer
from ..errors import InvalidStateError
from .params import AudioParam

if TYPE_CHECKING:
    from .context import AudioContext

logger = logging.getLogger(__name__)

PANNING_MODELS = ("equalpower", "HRTF")
DISTANCE_MODELS = ("linear", "inverse", "exponential")


def _fit_channels(block: np.ndarray, channels: int) -> np.ndarray:
    """Up-mix (copy) or down-mix (average) *block* to *channels* rows."""
    have = block.shape[0]
    if have == channels:
        return block
    if channels == 1:
        return block.mean(axis=0, keepdims=True)
    if have == 1:
        return np.repeat(block, channels, axis=0)
    if have > channels:
        return block[:channels]
    pad = np.zeros((channels - have, block.shape[1]), dtype=block.dtype)
    return np.concatenate([block, pad], axis=0)


class AudioNode:
    """Base class: connection bookkeeping plus input mixing."""

    channel_count = 1

    def __init__(self, context: "AudioContext") -> None:
        self.context = context
        self._inputs: list[AudioNode] = []
        self._outputs: list[AudioNode] = []
        context._register(self)

    # ── wiring ──
    def connect(self, destination: "AudioNode") -> "AudioNode":
        """Route this node's output into *destination*; returns *destination* for chaining."""
        if self.context.is_closed:
            raise InvalidStateError("Cannot connect nodes of a closed context")
        if destination.context is not self.context:
            raise ValueError("Cannot connect nodes that belong to different contexts")
        if destination not in self._outputs:
            self._outputs.append(destination)
            destination._inputs.append(self)
        return destination

    def disconnect(self, destination: Optional["AudioNode"] = None) -> None:
        """Drop one outgoing connection, or all of them when *destination* is None."""
        targets = list(self._outputs) if destination is None else [destination]
        for node in targets:
            if node in self._outputs:
                self._outputs.remove(node)
                node._inputs.remove(self)

    @property
    def inputs(self) -> tuple["AudioNode", ...]:
        return tuple(self._inputs)

    @property
    def outputs(self) -> tuple["AudioNode", ...]:
        return tuple(self._outputs)

    def _release(self) -> None:
        self.disconnect()
        for node in list(self._inputs):
            node.disconnect(self)

    # ── rendering ──
    def _mix_inputs(self, start: int, frames: int) -> np.ndarray:
        if not self._inputs:
            return np.zeros((1, frames), dtype=np.float64)
        blocks = [node.render(start, frames) for node in self._inputs]
        width = max(b.shape[0] for b in blocks)
        out = np.zeros((width, frames), dtype=np.float64)
        for b in blocks:
            out += _fit_channels(b, width)
        return out

    def render(self, start: int, frames: int) -> np.ndarray:
        """Output for absolute frames [start, start + frames) as a (channels, frames) array."""
        return self._mix_inputs(start, frames)

    def capture(self, start_time: float, duration: float) -> SampleBuffer:
        """Render this node's output over a time span into a SampleBuffer."""
        sr = self.context.sample_rate
        start = int(math.floor(start_time * sr + 0.5))
        frames = max(0, int(math.floor(duration * sr + 0.5)))
        block = self.render(start, frames)
        return SampleBuffer(channels=tuple(block), sample_rate=sr)


class AudioDestinationNode(AudioNode):
    """Final sink of the graph: a stereo output device."""

    channel_count = 2

    def render(self, start: int, frames: int) -> np.ndarray:
        return _fit_channels(self._mix_inputs(start, frames), 2)


class AudioBufferSourceNode(AudioNode):
    """
    Plays a SampleBuffer once (or looped) starting at a scheduled time.

    ``start`` and ``stop`` are one-shot: a source can be started once and
    stopped once, matching the platform's rules.  Playback rate is an
    AudioParam; the read position is the running sum of per-frame rates,
    scaled by buffer/context sample-rate ratio, with linear interpolation
    between buffer samples.
    """

    def __init__(self, context: "AudioContext") -> None:
        super().__init__(context)
        self._buffer: Optional[SampleBuffer] = None
        self._data: Optional[np.ndarray] = None
        self.loop = False
        self.playback_rate = AudioParam(context, 1.0, name="playbackRate")
        self._start_frame: Optional[int] = None
        self._stop_frame: Optional[int] = None
        self._offset = 0.0
        self._duration: Optional[float] = None

    @property
    def buffer(self) -> Optional[SampleBuffer]:
        return self._buffer

    @buffer.setter
    def buffer(self, value: Optional[SampleBuffer]) -> None:
        if self._buffer is not None and value is not None:
            raise InvalidStateError("Source buffer can only be assigned once")
        self._buffer = value
        self._data = None if value is None else value.as_array().astype(np.float64)

    @property
    def channel_count(self) -> int:  # type: ignore[override]
        return self._buffer.channel_count if self._buffer is not None else 1

    @property
    def started(self) -> bool:
        return self._start_frame is not None

    @property
    def stopped(self) -> bool:
        return self._stop_frame is not None

    def _frame_for(self, when: float) -> int:
        if not math.isfinite(when) or when < 0:
            raise ValueError(f"Schedule time must be finite and >= 0, got {when!r}")
        return max(int(math.floor(when * self.context.sample_rate + 0.5)), self.context.current_frame)

    def start(self, when: float = 0.0, offset: float = 0.0, duration: Optional[float] = None) -> None:
        """Schedule playback at context time *when*, from *offset* seconds into the buffer."""
        if self.context.is_closed:
            raise InvalidStateError("Cannot start a source on a closed context")
        if self._start_frame is not None:
            raise InvalidStateError("Source can only be started once")
        if not math.isfinite(offset) or offset < 0:
            raise ValueError(f"offset must be finite and >= 0, got {offset!r}")
        if duration is not None and (not math.isfinite(duration) or duration < 0):
            raise ValueError(f"duration must be finite and >= 0, got {duration!r}")
        self._start_frame = self._frame_for(when)
        self._offset = offset
        self._duration = duration
        logger.debug("source start frame=%d offset=%.3fs", self._start_frame, offset)

    def stop(self, when: float = 0.0) -> None:
        """Schedule the end of playback.  Stopping twice, or before start, is an error."""
        if self._start_frame is None:
            raise InvalidStateError("Cannot stop a source that was never started")
        if self._stop_frame is not None:
            raise InvalidStateError("Source already stopped")
        self._stop_frame = max(self._frame_for(when), self._start_frame)
        logger.debug("source stop frame=%d", self._stop_frame)

    # ── position ──
    def _positions(self, end_frame: int) -> np.ndarray:
        """Buffer read positions (in buffer samples) for frames [start_frame, end_frame)."""
        if self._start_frame is None or self._buffer is None:
            return np.zeros(0, dtype=np.float64)
        count = end_frame - self._start_frame
        if count <= 0:
            return np.zeros(0, dtype=np.float64)
        rates = self.playback_rate.values_for_frames(self._start_frame, count)
        steps = np.concatenate(([0.0], np.cumsum(rates[:-1])))
        ratio = self._buffer.sample_rate / self.context.sample_rate
        return self._offset * self._buffer.sample_rate + steps * ratio

    def _limit(self) -> float:
        if self._buffer is None or self._duration is None:
            return math.inf
        return (self._offset + self._duration) * self._buffer.sample_rate

    def position_at(self, frame: int) -> float:
        """Unwrapped buffer read position (samples) at context *frame*."""
        if self._start_frame is None or self._buffer is None or frame <= self._start_frame:
            return self._offset * (self._buffer.sample_rate if self._buffer else 0)
        return float(self._positions(frame + 1)[-1])

    @property
    def playback_position(self) -> float:
        """Current read position in seconds of buffer time, wrapped when looping."""
        if self._buffer is None or self._buffer.sample_count == 0:
            return 0.0
        stop = self._stop_frame if self._stop_frame is not None else self.context.current_frame
        pos = self.position_at(min(self.context.current_frame, stop))
        n = self._buffer.sample_count
        if self.loop:
            pos = pos % n
        else:
            pos = min(max(pos, 0.0), float(n))
        return pos / self._buffer.sample_rate

    @property
    def ended(self) -> bool:
        """True once playback has run past its stop time or the buffer's end."""
        if self._start_frame is None:
            return False
        frame = self.context.current_frame
        if self._stop_frame is not None and frame >= self._stop_frame:
            return True
        if self._buffer is None or frame < self._start_frame:
            return False
        pos = self.position_at(frame)
        if pos >= self._limit():
            return True
        if self.loop:
            return False
        return pos >= self._buffer.sample_count or pos < 0

    # ── rendering ──
    def render(self, start: int, frames: int) -> np.ndarray:
        out = np.zeros((self.channel_count, frames), dtype=np.float64)
        if self._data is None or self._start_frame is None or self.context.is_closed:
            return out
        n = self._data.shape[1]
        begin = max(start, self._start_frame)
        end = start + frames
        if self._stop_frame is not None:
            end = min(end, self._stop_frame)
        if end <= begin or n == 0:
            return out

        pos = self._positions(end)[begin - self._start_frame:]
        valid = pos < self._limit()
        if self.loop:
            pos = np.mod(pos, n)
        else:
            valid &= (pos >= 0) & (pos < n)
            pos = np.clip(pos, 0, n - 1)

        i0 = np.floor(pos).astype(np.int64)
        frac = pos - i0
        i1 = i0 + 1
        if self.loop:
            i1 %= n
            nxt = self._data[:, i1]
        else:
            nxt = np.where(i1 < n, self._data[:, np.minimum(i1, n - 1)], 0.0)
        cur = self._data[:, i0]
        values = cur + (nxt - cur) * frac
        out[:, begin - start:end - start] = np.where(valid, values, 0.0)
        return out


class GainNode(AudioNode):
    """Multiplies its input by the per-frame ``gain`` param."""

    def __init__(self, context: "AudioContext", gain: float = 1.0) -> None:
        super().__init__(context)
        self.gain = AudioParam(context, gain, name="gain")

    def render(self, start: int, frames: int) -> np.ndarray:
        mixed = self._mix_inputs(start, frames)
        return mixed * self.gain.values_for_frames(start, frames)


def _equal_power(x: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    angle = x * (math.pi / 2.0)
    return np.cos(angle), np.sin(angle)


class StereoPannerNode(AudioNode):
    """Equal-power stereo panner.  ``pan`` runs from -1 (left) to 1 (right)."""

    channel_count = 2

    def __init__(self, context: "AudioContext", pan: float = 0.0) -> None:
        super().__init__(context)
        self.pan = AudioParam(context, pan, min_value=-1.0, max_value=1.0, name="pan")

    def render(self, start: int, frames: int) -> np.ndarray:
        mixed = self._mix_inputs(start, frames)
        pan = self.pan.values_for_frames(start, frames)
        if mixed.shape[0] == 1:
            gain_l, gain_r = _equal_power((pan + 1.0) / 2.0)
            return np.stack([mixed[0] * gain_l, mixed[0] * gain_r])

        left, right = _fit_channels(mixed, 2)
        x = np.where(pan <= 0, pan + 1.0, pan)
        gain_l, gain_r = _equal_power(x)
        out_l = np.where(pan <= 0, left + right * gain_l, left * gain_l)
        out_r = np.where(pan <= 0, right * gain_r, right + left * gain_r)
        return np.stack([out_l, out_r])


def _normalize(v: np.ndarray) -> Optional[np.ndarray]:
    norm = float(np.linalg.norm(v))
    if norm == 0.0 or not math.isfinite(norm):
        return None
    return v / norm


class PannerNode(AudioNode):
    """
    Positions a mono source in 3D space relative to the context listener.

    Gain = distance attenuation * cone attenuation, then equal-power
    left/right placement from the source azimuth.  The "HRTF" model is
    accepted and rendered with the equal-power law.  Position and
    orientation are evaluated once per render call (k-rate).
    """

    channel_count = 2

    def __init__(self, context: "AudioContext") -> None:
        super().__init__(context)
        self.position_x = AudioParam(context, 0.0, name="positionX")
        self.position_y = AudioParam(context, 0.0, name="positionY")
        self.position_z = AudioParam(context, 0.0, name="positionZ")
        self.orientation_x = AudioParam(context, 1.0, name="orientationX")
        self.orientation_y = AudioParam(context, 0.0, name="orientationY")
        self.orientation_z = AudioParam(context, 0.0, name="orientationZ")
        self._panning_model = "equalpower"
        self._distance_model = "inverse"
        self._ref_distance = 1.0
        self._max_distance = 10000.0
        self._rolloff_factor = 1.0
        self.cone_inner_angle = 360.0
        self.cone_outer_angle = 360.0
        self._cone_outer_gain = 0.0

    # ── properties with validation ──
    @property
    def panning_model(self) -> str:
        return self._panning_model

    @panning_model.setter
    def panning_model(self, value: str) -> None:
        if value not in PANNING_MODELS:
            raise ValueError(f"Unknown panning model {value!r}; expected one of {PANNING_MODELS}")
        self._panning_model = value

    @property
    def distance_model(self) -> str:
        return self._distance_model

    @distance_model.setter
    def distance_model(self, value: str) -> None:
        if value not in DISTANCE_MODELS:
            raise ValueError(f"Unknown distance model {value!r}; expected one of {DISTANCE_MODELS}")
        self._distance_model = value

    @property
    def ref_distance(self) -> float:
        return self._ref_distance

    @ref_distance.setter
    def ref_distance(self, value: float) -> None:
        if not value >= 0:
            raise ValueError(f"ref_distance must be >= 0, got {value!r}")
        self._ref_distance = float(value)

    @property
    def max_distance(self) -> float:
        return self._max_distance

    @max_distance.setter
    def max_distance(self, value: float) -> None:
        if not value > 0:
            raise ValueError(f"max_distance must be > 0, got {value!r}")
        self._max_distance = float(value)

    @property
    def rolloff_factor(self) -> float:
        return self._rolloff_factor

    @rolloff_factor.setter
    def rolloff_factor(self, value: float) -> None:
        if not value >= 0:
            raise ValueError(f"rolloff_factor must be >= 0, got {value!r}")
        self._rolloff_factor = float(value)

    @property
    def cone_outer_gain(self) -> float:
        return self._cone_outer_gain

    @cone_outer_gain.setter
    def cone_outer_gain(self, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"cone_outer_gain must be in [0, 1], got {value!r}")
        self._cone_outer_gain = float(value)

    def set_position(self, x: float, y: float, z: float) -> None:
        self.position_x.value = x
        self.position_y.value = y
        self.position_z.value = z

    def set_orientation(self, x: float, y: float, z: float) -> None:
        self.orientation_x.value = x
        self.orientation_y.value = y
        self.orientation_z.value = z

    def _vector(self, params, frame: int) -> np.ndarray:
        return np.array([p.values_for_frames(frame, 1)[0] for p in params], dtype=np.float64)

    # ── gain model ──
    def distance_gain(self, distance: float) -> float:
        ref = self._ref_distance
        rolloff = self._rolloff_factor
        if self._distance_model == "linear":
            max_d = self._max_distance
            if max_d <= ref:
                return 1.0
            d = min(max(distance, ref), max_d)
            return 1.0 - min(rolloff, 1.0) * (d - ref) / (max_d - ref)
        if ref == 0.0:
            return 0.0 if distance > 0 else 1.0
        d = max(distance, ref)
        if self._distance_model == "inverse":
            return ref / (ref + rolloff * (d - ref))
        return (d / ref) ** (-rolloff)

    def cone_gain(self, source: np.ndarray, orientation: np.ndarray) -> float:
        inner, outer = self.cone_inner_angle, self.cone_outer_angle
        if inner >= 360 and outer >= 360:
            return 1.0
        facing = _normalize(orientation)
        to_listener = _normalize(self.context.listener.position - source)
        if facing is None or to_listener is None:
            return 1.0
        angle = math.degrees(math.acos(float(np.clip(np.dot(facing, to_listener), -1.0, 1.0))))
        half_inner, half_outer = abs(inner) / 2.0, abs(outer) / 2.0
        if angle <= half_inner:
            return 1.0
        if angle >= half_outer:
            return self._cone_outer_gain
        x = (angle - half_inner) / (half_outer - half_inner)
        return 1.0 + (self._cone_outer_gain - 1.0) * x

    def azimuth(self, source: np.ndarray) -> float:
        """Source azimuth in degrees, -90 = hard left, +90 = hard right."""
        listener = self.context.listener
        relative = _normalize(source - listener.position)
        forward = _normalize(listener.forward)
        up = _normalize(listener.up)
        if relative is None or forward is None or up is None:
            return 0.0
        right = _normalize(np.cross(forward, up))
        if right is None:
            return 0.0
        projected = _normalize(relative - np.dot(relative, up) * up)
        if projected is None:
            return 0.0
        az = math.degrees(math.acos(float(np.clip(np.dot(projected, right), -1.0, 1.0))))
        if np.dot(projected, forward) < 0:
            az = 360.0 - az
        az = 90.0 - az if az <= 270.0 else 450.0 - az
        az = max(-180.0, min(az, 180.0))
        if az < -90.0:
            az = -180.0 - az
        elif az > 90.0:
            az = 180.0 - az
        return az

    def render(self, start: int, frames: int) -> np.ndarray:
        mono = _fit_channels(self._mix_inputs(start, frames), 1)[0]
        source = self._vector((self.position_x, self.position_y, self.position_z), start)
        orientation = self._vector((self.orientation_x, self.orientation_y, self.orientation_z), start)
        distance = float(np.linalg.norm(source - self.context.listener.position))
        gain = self.distance_gain(distance) * self.cone_gain(source, orientation)
        gain_l, gain_r = _equal_power(np.array([(self.azimuth(source) + 90.0) / 180.0]))
        return np.stack([mono * gain * gain_l[0], mono * gain * gain_r[0]])
