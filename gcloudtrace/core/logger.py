"""Logging setup for the Cloud Trace recorder.

All modules log through ``logging.getLogger(__name__)`` beneath the
``gcloudtrace`` logger. This module only decides where those records go
and at which level.
"""

from __future__ import annotations

import logging
import sys
from typing import Literal

LogLevel = Literal["silent", "error", "warn", "info", "debug"]

ROOT_LOGGER_NAME = "gcloudtrace"

_LEVELS: dict[str, int] = {
    "silent": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_current_level: LogLevel = "info"
_handler: logging.Handler | None = None


def configure_logger(log_level: LogLevel = "info", prefix: str = "GCloudTrace") -> logging.Logger:
    """
    Install a single stderr handler on the package logger.

    Calling this again replaces the previous handler instead of adding a new one.

    Args:
        log_level: Minimum level to emit (silent, error, warn, info, debug)
        prefix: Tag printed in front of every message

    Returns:
        The configured package logger
    """
    global _handler

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(f"[{prefix}] %(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(_handler)

    set_log_level(log_level)
    return root


def set_log_level(log_level: LogLevel) -> None:
    """Change the package log level at runtime."""
    global _current_level

    if log_level not in _LEVELS:
        raise ValueError(f"Unknown log level: {log_level!r}")

    _current_level = log_level
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(_LEVELS[log_level])


def get_log_level() -> LogLevel:
    return _current_level
