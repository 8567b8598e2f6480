"""Logging configuration using loguru."""
from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from config import get_settings


def setup_logging(level: Optional[str] = None) -> None:
    logger.remove()
    logger.add(sys.stdout, level=(level or get_settings().log_level).upper())
