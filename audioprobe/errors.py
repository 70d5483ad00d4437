"""Exception types shared across the harness."""
from __future__ import annotations


class AudioProbeError(Exception):
    """Base class for harness errors."""


class InvalidStateError(AudioProbeError):
    """Operation on a closed context, a disposed node, or a source in the wrong state.

    Mirrors the platform audio stack: starting a source twice or stopping
    one that already stopped raises this, and cleanup code is expected to
    catch it.
    """


class WavFormatError(AudioProbeError, ValueError):
    """Bytes handed to the WAV reader are not a canonical PCM16 container."""


class ToleranceError(AudioProbeError, AssertionError):
    """A measured value fell outside its declared tolerance."""

    def __init__(self, message: str, *, name: str = "", measured=None, expected=None) -> None:
        super().__init__(message)
        self.name = name
        self.measured = measured
        self.expected = expected
