"""
Numeric Log Levels.

    level  name      shows                                   python level
    1      MINIMAL   startup, shutdown, errors               WARNING
    2      NORMAL    request lifecycle, cache status         INFO
    3      VERBOSE   stage timings, token refreshes, stores  DEBUG
    4      DEBUG     fingerprints, provider payload sizes    5 (below DEBUG)
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any

TRACE = logging.DEBUG - 5


class LogLevel(IntEnum):
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4

    @property
    def python_level(self) -> int:
        return _PYTHON_LEVELS[self]


_PYTHON_LEVELS = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: TRACE,
}

# Python's own level names, as operators tend to write them in LOG_LEVEL
_ALIASES = {
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
    "TRACE": LogLevel.DEBUG,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Read a level from config or the environment.

    Accepts 1-4, a stdlib level number, our level names, stdlib level
    names, or digits as a string, case-insensitively. Anything else is
    NORMAL.

    Examples:
        >>> coerce_level("verbose")
        <LogLevel.VERBOSE: 3>
        >>> coerce_level(logging.WARNING)
        <LogLevel.MINIMAL: 1>
    """
    if isinstance(value, LogLevel):
        return value
    if isinstance(value, str):
        text = value.strip().upper()
        if text.isdigit():
            value = int(text)
        elif text in LogLevel.__members__:
            return LogLevel[text]
        else:
            return _ALIASES.get(text, LogLevel.NORMAL)
    if isinstance(value, int) and not isinstance(value, bool):
        if 1 <= value <= 4:
            return LogLevel(value)
        # stdlib numbers: 30+ warning, 20+ info, below that debug
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        return LogLevel.NORMAL if value >= logging.INFO else LogLevel.DEBUG
    return LogLevel.NORMAL
