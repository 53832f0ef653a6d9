"""Logger construction for the server process."""

from __future__ import annotations

import logging
import sys

LOG_LINE_FORMAT = "[%(levelname)s] %(asctime)s %(message)s"

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_log_level(level: str) -> int:
    """Map a level name to a ``logging`` level; unknown names only log errors."""
    return _LEVELS.get(level.strip().lower(), logging.ERROR)


def build_logger(level: str, name: str = "http_server") -> logging.Logger:
    """Return a logger writing ``[LEVEL] timestamp message`` lines to stdout.

    Calling this again for the same name replaces the previous handler.
    """
    logger = logging.getLogger(name)
    logger.setLevel(parse_log_level(level))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT))
    logger.addHandler(stream_handler)
    logger.propagate = False
    return logger
