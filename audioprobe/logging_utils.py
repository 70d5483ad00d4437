from __future__ import annotations

import logging
import os
from typing import Optional

HARNESS_LOGGER = "audioprobe"

_TRUTHY = ("1", "true", "yes", "y", "on")


def _debug_requested() -> bool:
    return os.getenv("AUDIOPROBE_DEBUG", "0").strip().lower() in _TRUTHY


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure root logging for a probe run and return the harness logger.

    ``level`` falls back to LOG_LEVEL (default INFO). AUDIOPROBE_DEBUG=1 lifts
    only the harness loggers (graph lifecycle, facade transitions, tolerance
    failures) to DEBUG while numpy and friends stay at the root level.
    """
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper().strip()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    harness = logging.getLogger(HARNESS_LOGGER)
    # Usage: AUDIOPROBE_DEBUG=1 audioprobe-selftest
    if _debug_requested():
        harness.setLevel(logging.DEBUG)
    return harness
