"""Logging setup shared by the API and its background timers."""

from __future__ import annotations

import logging
from logging import Logger

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> Logger:
    """Configure root logging once and return the package logger."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logger = logging.getLogger("triviaquest")
    logger.setLevel(level.upper())
    return logger
