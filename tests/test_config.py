"""Tests for environment-driven configuration in audioprobe.config."""
import os
from pathlib import Path

import pytest

from audioprobe.config import ProbeConfig, load_config

_KEYS = (
    "AUDIOPROBE_SAMPLE_RATE",
    "AUDIOPROBE_FFT_SIZE",
    "AUDIOPROBE_PRECISE_FFT_SIZE",
    "AUDIOPROBE_SETTLE_MS",
    "AUDIOPROBE_SAMPLE_COUNT",
    "AUDIOPROBE_SAMPLE_INTERVAL_MS",
    "AUDIOPROBE_FREQ_TOLERANCE",
    "AUDIOPROBE_SILENCE_DB",
    "AUDIOPROBE_CLIP_LEVEL",
    "AUDIOPROBE_ARTIFACT_DIR",
    "AUDIOPROBE_WRITE_ARTIFACTS",
)


@pytest.fixture
def clean_env(monkeypatch):
    # load_dotenv writes straight into os.environ; give each test its own copy
    monkeypatch.setattr(os, "environ", os.environ.copy())
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestLoadConfig:
    def test_defaults(self, clean_env) -> None:
        cfg = load_config()
        assert cfg == ProbeConfig()
        assert cfg.sample_rate == 44100
        assert cfg.fft_size == 2048
        assert cfg.precise_fft_size == 8192
        assert cfg.freq_tolerance == 0.30
        assert cfg.artifact_dir == Path("artifacts")
        assert cfg.write_artifacts is True

    def test_overrides(self, clean_env) -> None:
        clean_env.setenv("AUDIOPROBE_SAMPLE_RATE", "48000")
        clean_env.setenv("AUDIOPROBE_FFT_SIZE", "4096")
        clean_env.setenv("AUDIOPROBE_FREQ_TOLERANCE", "0.1")
        clean_env.setenv("AUDIOPROBE_WRITE_ARTIFACTS", "off")
        cfg = load_config()
        assert cfg.sample_rate == 48000
        assert cfg.fft_size == 4096
        assert cfg.freq_tolerance == 0.1
        assert cfg.write_artifacts is False

    def test_env_file(self, clean_env, tmp_path) -> None:
        env = tmp_path / "probe.env"
        env.write_text("AUDIOPROBE_SETTLE_MS=250\nAUDIOPROBE_ARTIFACT_DIR=out/wav\n")
        cfg = load_config(str(env))
        assert cfg.settle_ms == 250
        assert cfg.artifact_dir == Path("out/wav")

    def test_environment_wins_over_env_file(self, clean_env, tmp_path) -> None:
        env = tmp_path / "probe.env"
        env.write_text("AUDIOPROBE_SAMPLE_COUNT=9\n")
        clean_env.setenv("AUDIOPROBE_SAMPLE_COUNT", "3")
        assert load_config(str(env)).sample_count == 3

    @pytest.mark.parametrize("key,value", [
        ("AUDIOPROBE_SAMPLE_RATE", "fast"),
        ("AUDIOPROBE_SAMPLE_RATE", "0"),
        ("AUDIOPROBE_FFT_SIZE", "1000"),
        ("AUDIOPROBE_PRECISE_FFT_SIZE", "65536"),
        ("AUDIOPROBE_SAMPLE_COUNT", "0"),
        ("AUDIOPROBE_FREQ_TOLERANCE", "1.5"),
        ("AUDIOPROBE_CLIP_LEVEL", "0"),
        ("AUDIOPROBE_WRITE_ARTIFACTS", "maybe"),
    ])
    def test_invalid_values(self, clean_env, key: str, value: str) -> None:
        clean_env.setenv(key, value)
        with pytest.raises(ValueError) as exc:
            load_config()
        assert key in str(exc.value)
