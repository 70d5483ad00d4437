"""
Self-check entry point: ``python -m audioprobe.selftest``.

Runs the end-to-end verification scenarios against the headless audio
graph, writes the WAV evidence artifact, logs a measurement summary and
exits 0 when every check passed, 1 otherwise.
"""
from __future__ import annotations

import asyncio
import logging
import sys
import uuid

from audioprobe.config import ProbeConfig, load_config
from audioprobe.errors import ToleranceError
from audioprobe.graph import AudioContext
from audioprobe.logging_utils import setup_logging
from audioprobe.metering import clipping_ratio, sample_rms
from audioprobe.playback import SoundPlayer, create_sound
from audioprobe.reporting import MeasurementReport
from audioprobe.signals import generate_silence, generate_tone
from audioprobe.spectral import find_dominant_frequency, is_silent
from audioprobe.tolerance import (
    assert_any_sample,
    assert_frequency,
    assert_increasing,
    assert_true,
    sample_repeatedly,
    wait_ms,
    within_relative,
)
from audioprobe.wav import HEADER_SIZE, encode

logger = logging.getLogger(__name__)


def _check_wav(cfg: ProbeConfig, report: MeasurementReport) -> None:
    tone = generate_tone(cfg.sample_rate, 440.0, 1.0)
    container = encode(tone)
    expected = HEADER_SIZE + tone.sample_count * 2
    assert_true(
        len(container) == expected,
        name="wav.length",
        measured=float(len(container)),
        detail=f"expected {expected} bytes",
        report=report,
    )
    if cfg.write_artifacts:
        path = container.save(cfg.artifact_dir / "tone_440hz.wav")
        report.add_artifact(path)
        logger.info("WAV artifact written: %s", path)


async def _check_tone(cfg: ProbeConfig, report: MeasurementReport) -> None:
    async with AudioContext(cfg.sample_rate) as ctx:
        player = await create_sound(ctx, "tone-440", generate_tone(cfg.sample_rate, 440.0, 2.0))
        with player:
            player.attach_analyzer(cfg.precise_fft_size)
            player.play()
            await wait_ms(cfg.settle_ms)
            analyser = player.get_analyzer()
            readings = await sample_repeatedly(
                lambda: find_dominant_frequency(analyser.get_frequency_frame()),
                cfg.sample_count,
                cfg.sample_interval_ms,
            )
            assert_any_sample(
                readings,
                lambda hz: within_relative(hz, 440.0, cfg.freq_tolerance),
                name="tone.dominant-any",
                report=report,
            )
            best = min(readings, key=lambda hz: abs(hz - 440.0))
            assert_frequency(best, 440.0, cfg.freq_tolerance, name="tone.dominant", report=report)


async def _check_silence(cfg: ProbeConfig, report: MeasurementReport) -> None:
    async with AudioContext(cfg.sample_rate) as ctx:
        player = await create_sound(ctx, "silence", generate_silence(cfg.sample_rate, 1.0), autoplay=True)
        with player:
            player.attach_analyzer(cfg.fft_size)
            await wait_ms(cfg.settle_ms)
            frame = player.get_analyzer().get_frequency_frame()
            assert_true(is_silent(frame, cfg.silence_db), name="silence.frame", report=report)


async def _check_monotonic(cfg: ProbeConfig, report: MeasurementReport) -> None:
    levels = []
    async with AudioContext(cfg.sample_rate) as ctx:
        for amplitude in (0.25, 0.5, 1.0):
            buf = generate_tone(cfg.sample_rate, 440.0, 1.0, amplitude=amplitude)
            player = await create_sound(ctx, f"tone-{amplitude}", buf, autoplay=True)
            player.attach_analyzer(cfg.fft_size)
            await wait_ms(cfg.settle_ms)
            levels.append(sample_rms(player.get_time_domain_data()))
            player.dispose()
    assert_increasing(levels, name="rms.monotonic", report=report)


def _check_clipping(cfg: ProbeConfig, report: MeasurementReport) -> None:
    hot = clipping_ratio(generate_tone(cfg.sample_rate, 440.0, 1.0, amplitude=2.0), cfg.clip_level)
    clean = clipping_ratio(generate_tone(cfg.sample_rate, 440.0, 1.0, amplitude=0.5), cfg.clip_level)
    assert_true(hot >= 0.01, name="clipping.hot", measured=hot, report=report)
    assert_true(clean == 0.0, name="clipping.clean", measured=clean, report=report)


def _check_facade_defaults(report: MeasurementReport) -> None:
    player = SoundPlayer(name="empty")
    defaults = (
        player.get_volume() == 0.0
        and player.get_playback_rate() == 1.0
        and player.get_loop() is False
        and player.get_panning() == 0.0
        and player.get_duration() == 0.0
        and player.get_current_time() == 0.0
        and player.get_sample_rate() == 44100
        and player.attach_analyzer() is False
        and player.get_frequency_data() is None
    )
    player.dispose()
    player.dispose()
    assert_true(defaults, name="facade.defaults", report=report)


async def run_checks(cfg: ProbeConfig) -> MeasurementReport:
    report = MeasurementReport(run_id=uuid.uuid4().hex[:12])
    steps = [
        ("wav", lambda: _check_wav(cfg, report)),
        ("tone", lambda: _check_tone(cfg, report)),
        ("silence", lambda: _check_silence(cfg, report)),
        ("monotonic", lambda: _check_monotonic(cfg, report)),
        ("clipping", lambda: _check_clipping(cfg, report)),
        ("facade", lambda: _check_facade_defaults(report)),
    ]
    for label, step in steps:
        try:
            result = step()
            if asyncio.iscoroutine(result):
                await result
        except ToleranceError as e:
            logger.error("Scenario %s failed: %s", label, e)
    report.finalize()
    return report


async def _async_main() -> int:
    setup_logging()
    cfg = load_config()
    logger.info(
        "Config: sample_rate=%d fft_size=%d precise_fft_size=%d settle_ms=%d samples=%dx%dms "
        "freq_tolerance=%.2f silence_db=%.1f clip_level=%.2f artifacts=%s(%s)",
        cfg.sample_rate, cfg.fft_size, cfg.precise_fft_size, cfg.settle_ms,
        cfg.sample_count, cfg.sample_interval_ms, cfg.freq_tolerance, cfg.silence_db,
        cfg.clip_level, cfg.artifact_dir, "on" if cfg.write_artifacts else "off",
    )
    report = await run_checks(cfg)
    report.log_summary()
    return 0 if report.ok else 1


def main() -> None:
    try:
        code = asyncio.run(_async_main())
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
