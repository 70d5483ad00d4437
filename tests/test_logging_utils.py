"""Tests for audioprobe.logging_utils."""
import logging

import pytest

from audioprobe.logging_utils import HARNESS_LOGGER, setup_logging


@pytest.fixture
def harness_level():
    harness = logging.getLogger(HARNESS_LOGGER)
    saved = harness.level
    yield harness
    harness.setLevel(saved)


def test_returns_harness_logger(monkeypatch, harness_level) -> None:
    monkeypatch.delenv("AUDIOPROBE_DEBUG", raising=False)
    harness_level.setLevel(logging.NOTSET)
    logger = setup_logging()
    assert logger is harness_level
    assert logger.level == logging.NOTSET


@pytest.mark.parametrize("flag", ["1", "true", "ON", " yes "])
def test_debug_flag_raises_harness_only(monkeypatch, harness_level, flag: str) -> None:
    monkeypatch.setenv("AUDIOPROBE_DEBUG", flag)
    setup_logging("warning")
    assert harness_level.level == logging.DEBUG
    assert logging.getLogger("numpy").level == logging.NOTSET
