from __future__ import annotations
from dataclasses import dataclass
import logging
import os
from pathlib import Path
from dotenv import load_dotenv

from .spectral import validate_fft_size

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "y", "on")
_FALSY = ("0", "false", "no", "n", "off")


def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None or str(v).strip() == "":
        return default
    try:
        return int(v)
    except Exception as e:
        raise ValueError(f"{key} must be an int, got {v!r}") from e


def _env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    if v is None or str(v).strip() == "":
        return default
    try:
        return float(v)
    except Exception as e:
        raise ValueError(f"{key} must be a float, got {v!r}") from e


def _env_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v is None or str(v).strip() == "":
        return default
    s = str(v).strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    raise ValueError(f"{key} must be a boolean, got {v!r}")


def _env_fft_size(key: str, default: int) -> int:
    n = _env_int(key, default)
    try:
        return validate_fft_size(n)
    except ValueError as e:
        raise ValueError(f"{key} must be a power of two in [32, 32768], got {n!r}") from e


@dataclass(frozen=True)
class ProbeConfig:
    sample_rate: int = 44100
    fft_size: int = 2048
    precise_fft_size: int = 8192
    settle_ms: int = 100
    sample_count: int = 5
    sample_interval_ms: int = 20
    freq_tolerance: float = 0.30
    silence_db: float = -100.0
    clip_level: float = 0.99
    artifact_dir: Path = Path("artifacts")
    write_artifacts: bool = True


def load_config(env_file: str | None = None) -> ProbeConfig:
    """Load harness settings from .env + environment.

    Precedence: real environment wins over .env values.
    """
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    sample_rate = _env_int("AUDIOPROBE_SAMPLE_RATE", 44100)
    if sample_rate <= 0:
        raise ValueError(f"AUDIOPROBE_SAMPLE_RATE must be > 0, got {sample_rate!r}")

    fft_size = _env_fft_size("AUDIOPROBE_FFT_SIZE", 2048)
    precise_fft_size = _env_fft_size("AUDIOPROBE_PRECISE_FFT_SIZE", 8192)

    settle_ms = _env_int("AUDIOPROBE_SETTLE_MS", 100)
    sample_count = _env_int("AUDIOPROBE_SAMPLE_COUNT", 5)
    sample_interval_ms = _env_int("AUDIOPROBE_SAMPLE_INTERVAL_MS", 20)
    if settle_ms < 0 or sample_interval_ms < 0:
        raise ValueError("AUDIOPROBE_SETTLE_MS and AUDIOPROBE_SAMPLE_INTERVAL_MS must be >= 0")
    if sample_count < 1:
        raise ValueError(f"AUDIOPROBE_SAMPLE_COUNT must be >= 1, got {sample_count!r}")

    freq_tolerance = _env_float("AUDIOPROBE_FREQ_TOLERANCE", 0.30)
    if not 0.0 <= freq_tolerance < 1.0:
        raise ValueError(f"AUDIOPROBE_FREQ_TOLERANCE must be in [0, 1), got {freq_tolerance!r}")

    silence_db = _env_float("AUDIOPROBE_SILENCE_DB", -100.0)
    clip_level = _env_float("AUDIOPROBE_CLIP_LEVEL", 0.99)
    if not 0.0 < clip_level <= 1.0:
        raise ValueError(f"AUDIOPROBE_CLIP_LEVEL must be in (0, 1], got {clip_level!r}")

    artifact_dir = os.getenv("AUDIOPROBE_ARTIFACT_DIR", "artifacts").strip().strip('"').strip("'") or "artifacts"
    write_artifacts = _env_bool("AUDIOPROBE_WRITE_ARTIFACTS", True)

    if sample_rate not in (8000, 16000, 22050, 24000, 32000, 44100, 48000, 96000):
        logger.warning("Unusual AUDIOPROBE_SAMPLE_RATE=%d, analyser bin mapping will follow it.", sample_rate)
    if settle_ms < 50:
        logger.warning(
            "AUDIOPROBE_SETTLE_MS=%d is short; analyser reads may land before the tone is rendered.",
            settle_ms,
        )

    return ProbeConfig(
        sample_rate=sample_rate,
        fft_size=fft_size,
        precise_fft_size=precise_fft_size,
        settle_ms=settle_ms,
        sample_count=sample_count,
        sample_interval_ms=sample_interval_ms,
        freq_tolerance=freq_tolerance,
        silence_db=silence_db,
        clip_level=clip_level,
        artifact_dir=Path(artifact_dir).expanduser(),
        write_artifacts=write_artifacts,
    )
