"""Logging setup for the lgr package logger."""

from __future__ import annotations

import logging
import sys
from typing import Literal

LogLevel = Literal["silent", "error", "warn", "info", "debug"]

PACKAGE_LOGGER = "lgr"

_LEVELS: dict[str, int] = {
    "silent": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_current_level: LogLevel = "info"


def _package_logger() -> logging.Logger:
    return logging.getLogger(PACKAGE_LOGGER)


def configure_logger(log_level: LogLevel = "info", prefix: str = "lgr") -> None:
    """
    Attach a stderr handler to the package logger.

    Calling this again replaces the handler instead of adding a second one.

    Args:
        log_level: Minimum level emitted (silent, error, warn, info, debug)
        prefix: Text shown in brackets at the start of each line
    """
    package_logger = _package_logger()
    for handler in list(package_logger.handlers):
        if getattr(handler, "_lgr_handler", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(f"[{prefix}] %(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler._lgr_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
    package_logger.propagate = False
    set_log_level(log_level)


def set_log_level(log_level: LogLevel) -> None:
    global _current_level
    if log_level not in _LEVELS:
        raise ValueError(f"Invalid log level {log_level!r}; expected one of {', '.join(_LEVELS)}")
    _current_level = log_level
    _package_logger().setLevel(_LEVELS[log_level])


def get_log_level() -> LogLevel:
    return _current_level
