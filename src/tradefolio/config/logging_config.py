"""Logging configuration."""

import logging
import sys
from typing import Optional

from tradefolio.config.settings import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "yfinance", "apscheduler")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging to stdout; ``level`` overrides ``settings.log_level``."""
    level_name = (level or get_settings().log_level).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
