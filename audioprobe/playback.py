"""
Playback facade.

SoundPlayer is the surface tests drive: play / pause / stop, volume with
optional fades, rate, loop, pan, and access to an analyser tap.  It holds
a SoundResource; before a resource exists (or after dispose) it holds a
NullSound, whose every query answers with the documented default, so no
caller ever branches on "is there a sound yet".

GraphSound is the resource backed by the headless audio graph:

    source -> gain -> stereo panner (or 3D panner) -> [analyser] -> destination

Buffer sources are one-shot, so every play() (including resume after
pause) builds a fresh source starting at the remembered offset.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import math
from typing import Optional, Protocol, Union

import numpy as np

from .buffer import SampleBuffer
from .errors import InvalidStateError
from .graph import AnalyserNode, AudioBufferSourceNode, AudioContext, PannerNode, StereoPannerNode
from .graph.analyser import DEFAULT_FFT_SIZE

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 44100


class PlaybackState(str, enum.Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class SoundResource(Protocol):
    """Capability set a playable sound must provide."""

    @property
    def is_playing(self) -> bool: ...

    @property
    def is_paused(self) -> bool: ...

    def play(self) -> None: ...

    def stop(self) -> None: ...

    def pause(self) -> None: ...

    def set_volume(self, level: float, fade_ms: float = 0.0) -> None: ...

    def get_volume(self) -> float: ...

    def set_rate(self, rate: float) -> None: ...

    def get_rate(self) -> float: ...

    def set_loop(self, loop: bool) -> None: ...

    def get_loop(self) -> bool: ...

    def set_pan(self, pan: float) -> None: ...

    def get_pan(self) -> float: ...

    def duration(self) -> float: ...

    def current_time(self) -> float: ...

    def sample_rate(self) -> int: ...

    def attach_analyser(self, fft_size: int = DEFAULT_FFT_SIZE) -> Optional[AnalyserNode]: ...

    @property
    def analyser(self) -> Optional[AnalyserNode]: ...

    def release(self) -> None: ...


class NullSound:
    """The "no sound loaded" resource: inert, answers with defaults."""

    is_playing = False
    is_paused = False
    analyser = None

    def play(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def pause(self) -> None:
        pass

    def set_volume(self, level: float, fade_ms: float = 0.0) -> None:
        pass

    def get_volume(self) -> float:
        return 0.0

    def set_rate(self, rate: float) -> None:
        pass

    def get_rate(self) -> float:
        return 1.0

    def set_loop(self, loop: bool) -> None:
        pass

    def get_loop(self) -> bool:
        return False

    def set_pan(self, pan: float) -> None:
        pass

    def get_pan(self) -> float:
        return 0.0

    def duration(self) -> float:
        return 0.0

    def current_time(self) -> float:
        return 0.0

    def sample_rate(self) -> int:
        return DEFAULT_SAMPLE_RATE

    def attach_analyser(self, fft_size: int = DEFAULT_FFT_SIZE) -> Optional[AnalyserNode]:
        return None

    def release(self) -> None:
        pass


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class GraphSound:
    """SoundResource that plays a SampleBuffer through an AudioContext."""

    def __init__(
        self,
        context: AudioContext,
        buffer: SampleBuffer,
        *,
        name: str = "",
        loop: bool = False,
        volume: float = 1.0,
        playback_rate: float = 1.0,
        spatial: bool = False,
        max_distance: float = 10000.0,
    ) -> None:
        self.context = context
        self.buffer = buffer
        self.name = name
        self._loop = bool(loop)
        self._rate = 1.0
        self._pan = 0.0
        self._source: Optional[AudioBufferSourceNode] = None
        self._paused = False
        self._offset = 0.0
        self._analyser: Optional[AnalyserNode] = None

        self._volume = max(volume, 0.0)
        self._gain = context.create_gain(self._volume)
        self._panner: Union[StereoPannerNode, PannerNode]
        if spatial:
            self._panner = context.create_panner()
            self._panner.max_distance = max_distance
        else:
            self._panner = context.create_stereo_panner()
        self._gain.connect(self._panner).connect(context.destination)
        self.set_rate(playback_rate)

    @property
    def spatial(self) -> bool:
        return isinstance(self._panner, PannerNode)

    # ── transport ──
    def _reap(self) -> None:
        """Drop a source that reached its natural end."""
        if self._source is not None and self._source.ended:
            logger.debug("sound %s ended", self.name)
            self._source.disconnect()
            self._source = None
            self._offset = 0.0

    @property
    def is_playing(self) -> bool:
        self._reap()
        return self._source is not None

    @property
    def is_paused(self) -> bool:
        return self._paused

    def play(self) -> None:
        if self.is_playing:
            return
        try:
            source = self.context.create_buffer_source()
            source.buffer = self.buffer
            source.loop = self._loop
            source.playback_rate.value = self._rate
            source.connect(self._gain)
            source.start(0, offset=self._offset)
        except InvalidStateError as e:
            logger.debug("sound %s: play ignored (%s)", self.name, e)
            return
        self._source = source
        self._paused = False
        logger.debug("sound %s playing from %.3fs", self.name, self._offset)

    def _halt_source(self) -> None:
        if self._source is None:
            return
        try:
            self._source.stop()
        except InvalidStateError as e:
            logger.debug("sound %s: source stop ignored (%s)", self.name, e)
        self._source.disconnect()
        self._source = None

    def stop(self) -> None:
        self._halt_source()
        self._paused = False
        self._offset = 0.0

    def pause(self) -> None:
        if not self.is_playing or self._source is None:
            return
        self._offset = self._source.playback_position
        self._halt_source()
        self._paused = True
        logger.debug("sound %s paused at %.3fs", self.name, self._offset)

    # ── parameters ──
    def set_volume(self, level: float, fade_ms: float = 0.0) -> None:
        """Set the target gain (>= 0, values above 1 amplify).

        With *fade_ms* > 0 the gain ramps linearly from its current value;
        ``get_volume`` reports the target straight away.
        """
        if math.isnan(level):
            raise ValueError("volume must be a number")
        level = max(level, 0.0)
        self._volume = level
        gain = self._gain.gain
        if fade_ms > 0:
            now = self.context.current_time
            current = gain.value
            gain.cancel_scheduled_values(now)
            gain.set_value_at_time(current, now)
            gain.linear_ramp_to_value_at_time(level, now + fade_ms / 1000.0)
        else:
            gain.cancel_scheduled_values(0.0)
            gain.value = level

    def get_volume(self) -> float:
        return self._volume

    @property
    def current_gain(self) -> float:
        """Gain applied right now, mid-fade included."""
        return self._gain.gain.value

    def set_rate(self, rate: float) -> None:
        if not math.isfinite(rate) or rate <= 0:
            raise ValueError(f"playback rate must be finite and > 0, got {rate!r}")
        self._rate = float(rate)
        if self._source is not None:
            # frames already played keep the rate they were played at
            self._source.playback_rate.set_value_at_time(self._rate, self.context.current_time)

    def get_rate(self) -> float:
        return self._rate

    def set_loop(self, loop: bool) -> None:
        self._loop = bool(loop)
        if self._source is not None:
            self._source.loop = self._loop

    def get_loop(self) -> bool:
        return self._loop

    def set_pan(self, pan: float) -> None:
        if math.isnan(pan):
            raise ValueError("pan must be a number")
        self._pan = _clamp(pan, -1.0, 1.0)
        if isinstance(self._panner, PannerNode):
            self._panner.set_position(self._pan, 0.0, -0.5)
        else:
            self._panner.pan.value = self._pan

    def get_pan(self) -> float:
        return self._pan

    def duration(self) -> float:
        return self.buffer.duration

    def current_time(self) -> float:
        if self.is_playing and self._source is not None:
            return self._source.playback_position
        return self._offset

    def sample_rate(self) -> int:
        return self.context.sample_rate

    # ── analysis tap ──
    @property
    def analyser(self) -> Optional[AnalyserNode]:
        return self._analyser

    def attach_analyser(self, fft_size: int = DEFAULT_FFT_SIZE) -> Optional[AnalyserNode]:
        """Insert an analyser between the panner and the destination (once)."""
        if self._analyser is not None:
            return self._analyser
        if self.context.is_closed:
            return None
        analyser = self.context.create_analyser(fft_size)
        self._panner.disconnect(self.context.destination)
        self._panner.connect(analyser).connect(self.context.destination)
        self._analyser = analyser
        return analyser

    def release(self) -> None:
        self._halt_source()
        for node in (self._gain, self._panner, self._analyser):
            if node is not None:
                node.disconnect()
        self._analyser = None
        self._paused = False
        logger.debug("sound %s released", self.name)


class SoundPlayer:
    """
    Facade over one SoundResource.

    Every operation is safe to call in any state; with no resource loaded
    (or after dispose) reads return the defaults: volume 0, rate 1.0, loop
    False, pan 0, duration 0, current time 0, sample rate 44100.
    """

    def __init__(self, resource: Optional[SoundResource] = None, name: str = "") -> None:
        self.name = name
        self._sound: SoundResource = resource if resource is not None else NullSound()
        self._disposed = False

    # ── state ──
    @property
    def is_ready(self) -> bool:
        return not isinstance(self._sound, NullSound)

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def is_playing(self) -> bool:
        return self._sound.is_playing

    @property
    def is_paused(self) -> bool:
        return self._sound.is_paused and not self._sound.is_playing

    @property
    def state(self) -> PlaybackState:
        if self.is_playing:
            return PlaybackState.PLAYING
        if self.is_paused:
            return PlaybackState.PAUSED
        return PlaybackState.IDLE

    def load(self, resource: SoundResource) -> None:
        """Swap in a new resource, releasing the previous one."""
        if self._disposed:
            raise InvalidStateError(f"player {self.name!r} is disposed")
        previous = self._sound
        self._sound = resource
        previous.release()

    # ── transport ──
    def play(self) -> None:
        before = self.state
        self._sound.play()
        logger.debug("player %s: %s -> %s", self.name, before.value, self.state.value)

    def stop(self) -> None:
        self._sound.stop()

    def pause(self) -> None:
        self._sound.pause()

    # ── parameters ──
    def set_volume(self, level: float, fade_ms: float = 0.0) -> None:
        self._sound.set_volume(level, fade_ms)

    def get_volume(self) -> float:
        return self._sound.get_volume()

    def set_playback_rate(self, rate: float) -> None:
        self._sound.set_rate(rate)

    def get_playback_rate(self) -> float:
        return self._sound.get_rate()

    def set_loop(self, loop: bool) -> None:
        self._sound.set_loop(loop)

    def get_loop(self) -> bool:
        return self._sound.get_loop()

    def set_panning(self, pan: float) -> None:
        self._sound.set_pan(pan)

    def get_panning(self) -> float:
        return self._sound.get_pan()

    def get_duration(self) -> float:
        return self._sound.duration()

    def get_current_time(self) -> float:
        return self._sound.current_time()

    def get_sample_rate(self) -> int:
        return self._sound.sample_rate()

    # ── analysis ──
    def attach_analyzer(self, fft_size: int = DEFAULT_FFT_SIZE) -> bool:
        return self._sound.attach_analyser(fft_size) is not None

    def get_analyzer(self) -> Optional[AnalyserNode]:
        return self._sound.analyser

    def get_frequency_data(self) -> Optional[np.ndarray]:
        analyser = self._sound.analyser
        return None if analyser is None else analyser.get_float_frequency_data()

    def get_byte_frequency_data(self) -> Optional[np.ndarray]:
        analyser = self._sound.analyser
        return None if analyser is None else analyser.get_byte_frequency_data()

    def get_time_domain_data(self) -> Optional[np.ndarray]:
        analyser = self._sound.analyser
        return None if analyser is None else analyser.get_float_time_domain_data()

    # ── lifecycle ──
    def dispose(self) -> None:
        """Release the resource exactly once; later calls do nothing."""
        if self._disposed:
            return
        self._disposed = True
        sound, self._sound = self._sound, NullSound()
        sound.stop()
        sound.release()
        logger.debug("player %s disposed", self.name)

    def __enter__(self) -> "SoundPlayer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()


async def create_sound(
    context: AudioContext,
    name: str,
    buffer: SampleBuffer,
    *,
    loop: bool = False,
    autoplay: bool = False,
    volume: float = 1.0,
    playback_rate: float = 1.0,
    spatial: bool = False,
    max_distance: float = 10000.0,
) -> SoundPlayer:
    """Build a GraphSound for *buffer* and return a ready player."""
    sound = GraphSound(
        context,
        buffer,
        name=name,
        loop=loop,
        volume=volume,
        playback_rate=playback_rate,
        spatial=spatial,
        max_distance=max_distance,
    )
    # yield once, like waiting for a load callback
    await asyncio.sleep(0)
    player = SoundPlayer(sound, name=name)
    logger.info(
        "Sound %s ready (%.3fs, %d ch @ %d Hz, spatial=%s)",
        name, buffer.duration, buffer.channel_count, buffer.sample_rate, spatial,
    )
    if autoplay:
        player.play()
    return player
