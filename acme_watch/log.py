"""Logger setup — one ``acme_watch`` logger, stderr plus an optional file."""

from __future__ import annotations

import logging
import os
import sys

_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logger(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """Configure and return the ``acme_watch`` logger.

    Errors are always visible on stderr; *log_file*, when given, receives
    everything down to DEBUG.
    """
    logger = logging.getLogger("acme_watch")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(getattr(logging, level.upper(), logging.INFO))
    sh.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(sh)

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(fh)

    return logger
