"""Process-wide logging setup shared by the API, the services and the scripts."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from portal.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(level: Optional[str] = None) -> None:
    """Attach the stdout handler to the root logger and set its level.

    The handler is installed once; later calls only change the level, which
    lets a launcher or test raise verbosity after modules have imported
    their loggers. Reconciliation passes log one pipe-separated line per
    repaired or failed record.
    """
    global _handler
    root = logging.getLogger()
    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_handler)
    root.setLevel((level or get_settings().log_level).upper())


def get_logger(name: str) -> logging.Logger:
    if _handler is None:
        configure_logging()
    return logging.getLogger(name)
