"""Logging configuration for the live survey service."""

from __future__ import annotations

import logging
from logging import Logger

from .config import LOG_LEVEL


def configure_logging(level: str | None = None) -> Logger:
    """Configure basic logging for the service and return the package logger."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("livesurvey")
