"""Process-wide logging setup shared by controllers, services and the store."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from resort.utils.config import get_settings


_LOGGER_INITIALIZED = False

# Outbound Telegram calls go through requests/urllib3, which log every
# connection at DEBUG and would drown webhook traces.
_NOISY_LOGGERS = ("urllib3", "requests")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once per process."""

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
