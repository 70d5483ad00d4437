"""
Canonical PCM16 WAV container: the one bit-exact contract of the harness.

Layout (all fields little-endian):

  offset  size  field
  ------  ----  -----------------------------------------
       0     4  "RIFF"
       4     4  36 + data size
       8     4  "WAVE"
      12     4  "fmt "
      16     4  16 (fmt chunk size)
      20     2  1  (PCM)
      22     2  channel count
      24     4  sample rate
      28     4  byte rate   = sample_rate * channels * 2
      32     2  block align = channels * 2
      34     2  16 (bits per sample)
      36     4  "data"
      40     4  data size   = samples * channels * 2
      44     …  interleaved int16 samples

Float samples are clamped to [-1, 1] before scaling by 32767 and rounding
half-up, so out-of-range input saturates instead of wrapping around.
NaN encodes as 0 and ±inf as ±32767; encoding never fails.
"""
from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from .buffer import SampleBuffer
from .errors import WavFormatError

logger = logging.getLogger(__name__)

HEADER_SIZE = 44
PCM_FORMAT = 1
BITS_PER_SAMPLE = 16
PCM16_SCALE = 32767

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
    """Parsed fields of a canonical 44-byte WAV header."""
    riff_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    @property
    def frame_count(self) -> int:
        if self.block_align <= 0:
            return 0
        return self.data_size // self.block_align


@dataclass(frozen=True)
class WavContainer:
    """Serialised WAV bytes (header + payload)."""
    data: bytes

    @property
    def header(self) -> WavHeader:
        return read_header(self.data)

    @property
    def payload(self) -> bytes:
        return self.data[HEADER_SIZE:]

    def save(self, path: Union[str, Path]) -> Path:
        """Write the container to *path*, creating parent directories."""
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(self.data)
        logger.debug("Wrote WAV artifact %s (%d bytes)", p, len(self.data))
        return p

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:
        return self.data


def float_to_pcm16(samples) -> np.ndarray:
    """Clamp float samples to [-1, 1] and scale to int16 (round half-up)."""
    arr = np.asarray(samples, dtype=np.float64)
    arr = np.nan_to_num(arr, nan=0.0, posinf=1.0, neginf=-1.0)
    arr = np.clip(arr, -1.0, 1.0)
    return np.floor(arr * PCM16_SCALE + 0.5).astype("<i2")


def _header_bytes(channels: int, sample_rate: int, data_size: int) -> bytes:
    block_align = channels * (BITS_PER_SAMPLE // 8)
    return _HEADER.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )


def encode(buffer: SampleBuffer) -> WavContainer:
    """Serialise *buffer* as interleaved PCM16 WAV.

    Total length is always 44 + sample_count * channel_count * 2; a
    zero-length buffer gives the bare header.
    """
    if buffer.sample_count == 0:
        payload = b""
    else:
        interleaved = float_to_pcm16(buffer.as_array()).T.reshape(-1)
        payload = interleaved.tobytes()
    header = _header_bytes(buffer.channel_count, int(buffer.sample_rate), len(payload))
    return WavContainer(data=header + payload)


def read_header(data: bytes) -> WavHeader:
    """Parse and validate the 44-byte header of *data*."""
    if len(data) < HEADER_SIZE:
        raise WavFormatError(f"WAV data too short: {len(data)} bytes < {HEADER_SIZE}")
    (riff, riff_size, wave, fmt, fmt_size, audio_format, channels, sample_rate,
     byte_rate, block_align, bits, data_tag, data_size) = _HEADER.unpack_from(data, 0)
    if riff != b"RIFF" or wave != b"WAVE":
        raise WavFormatError("Missing RIFF/WAVE tags")
    if fmt != b"fmt " or fmt_size != 16:
        raise WavFormatError("Missing canonical 'fmt ' chunk")
    if data_tag != b"data":
        raise WavFormatError("Missing 'data' chunk at offset 36")
    return WavHeader(
        riff_size=riff_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=data_size,
    )


def decode(data: Union[bytes, WavContainer]) -> SampleBuffer:
    """Read a canonical PCM16 WAV back into a SampleBuffer (int16 / 32767)."""
    raw = bytes(data)
    header = read_header(raw)
    if header.audio_format != PCM_FORMAT or header.bits_per_sample != BITS_PER_SAMPLE:
        raise WavFormatError(
            f"Only 16-bit PCM is supported (format={header.audio_format}, bits={header.bits_per_sample})"
        )
    if header.channels < 1:
        raise WavFormatError("WAV header declares zero channels")
    if header.block_align != header.channels * 2:
        raise WavFormatError(
            f"block_align {header.block_align} does not match {header.channels} channel(s) of PCM16"
        )
    payload = raw[HEADER_SIZE:HEADER_SIZE + header.data_size]
    usable = len(payload) - len(payload) % header.block_align
    ints = np.frombuffer(payload[:usable], dtype="<i2")
    frames = ints.reshape(-1, header.channels).T.astype(np.float64) / PCM16_SCALE
    return SampleBuffer(channels=tuple(frames), sample_rate=header.sample_rate)


def write_wav(path: Union[str, Path], buffer: SampleBuffer) -> WavContainer:
    """Encode *buffer* and write it to *path*."""
    container = encode(buffer)
    container.save(path)
    return container
