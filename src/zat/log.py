"""Logging setup for the zat command line.

Standard output carries payloads, so every handler installed here writes to
standard error.
"""

from __future__ import annotations

import logging
import os
import sys

FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DEFAULT_LEVEL = logging.WARNING

_LEVELS = (logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL)


def level_from_env(default: int = DEFAULT_LEVEL) -> int:
    """Return the level named by ``ZAT_LOG`` (e.g. ``info``), or *default*."""
    name = os.environ.get("ZAT_LOG")
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    if isinstance(level, int):
        return level
    return default


def configure(verbosity: int = 0, stream=None) -> logging.Logger:
    """Attach a stderr handler to the ``zat`` logger, replacing any handler
    installed by an earlier call.

    Each unit of *verbosity* lowers the threshold by one step, starting from
    the level chosen by :func:`level_from_env`.
    """
    level = level_from_env()
    if verbosity > 0:
        index = _LEVELS.index(level) if level in _LEVELS else _LEVELS.index(DEFAULT_LEVEL)
        level = _LEVELS[max(0, index - verbosity)]

    logger = logging.getLogger("zat")
    for handler in list(logger.handlers):
        if getattr(handler, "zat_console", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(FORMAT))
    handler.zat_console = True
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger

