"""Scoped log channel for the cargohold package logger."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_log_level(level: str) -> int:
    """Map a level name to a logging constant. Unknown names fall back to INFO."""
    return LOG_LEVELS.get((level or "").strip().lower(), logging.INFO)


@contextmanager
def open_log_channel(
    level: str = "info",
    name: str = "cargohold",
    handler: Optional[logging.Handler] = None,
) -> Iterator[logging.Logger]:
    """
    Attaches a handler to the named logger for the duration of the block.

    The handler is always detached and closed on exit, and the logger level
    restored, so nested or repeated sessions never stack handlers.

    Args:
        level: Level name (debug, info, warn, error).
        name: Logger name, the package logger by default.
        handler: Handler to attach. Defaults to a stderr StreamHandler.

    Yields:
        The configured logger.
    """
    channel = logging.getLogger(name)
    previous_level = channel.level
    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    channel.setLevel(parse_log_level(level))
    channel.addHandler(handler)
    try:
        yield channel
    finally:
        channel.removeHandler(handler)
        handler.close()
        channel.setLevel(previous_level)
