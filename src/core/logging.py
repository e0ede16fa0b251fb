"""
Console logging for the query dashboard service.
"""
from __future__ import annotations

import logging
import sys

from src.core.config import get_settings

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Return a stdout logger; *level* overrides the configured LOG_LEVEL."""
    level_name = (level or get_settings().log_level).upper()
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    return logger
