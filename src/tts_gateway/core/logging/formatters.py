"""
Log Formatters.

    JsonlFormatter           one JSON object per line, for files and shippers
    ColoredConsoleFormatter  "HH:MM:SS [ TAG ] (rid) message key=value 0.123s"

Console colors are off when stdout is not a terminal, or when NO_COLOR or
TTS_GATEWAY_NO_COLOR=1 is set.

Output Examples:
    {"ts":"2025-03-02T10:14:05+00:00","level":2,"tag":"INFO","message":"cache_hit","request_id":"3f9a0c1d2b4e","extra":{"mode":"gTTS"}}
    10:14:05 [ INFO  ] (3f9a0c1d2b4e) cache_hit mode=gTTS 0.002s
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, Optional

RESET = "\033[0m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
MAGENTA = "\033[35m"
CYAN = "\033[36m"
GRAY = "\033[90m"

_TAG_COLORS = {
    "SUCCESS": "\033[92m",
    "ERROR": "\033[91m",
    "WARN": "\033[93m",
    "INFO": "\033[96m",
    "DEBUG": GRAY,
}

_FIELD_COLORS = {
    "mode": MAGENTA,
    "provider": MAGENTA,
    "cache": BLUE,
    "error": RED,
}


def supports_color(stream: Any = None) -> bool:
    """True if ANSI colors should be written to ``stream`` (stdout by default)."""
    if os.getenv("TTS_GATEWAY_NO_COLOR") == "1" or os.getenv("NO_COLOR"):
        return False
    isatty = getattr(stream if stream is not None else sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        "tag": getattr(record, "tag", record.levelname),
        "level": getattr(record, "numeric_level", 2),
        "request_id": getattr(record, "request_id", "-"),
        "event": getattr(record, "event", None),
        "seconds": getattr(record, "seconds", None),
        "extra": getattr(record, "extra_data", None) or {},
    }


class JsonlFormatter(logging.Formatter):
    """ts, level (1-4), tag, message, request_id; event, seconds, extra and exc when set."""

    def format(self, record: logging.LogRecord) -> str:
        f = _record_fields(record)
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": f["level"],
            "tag": f["tag"],
            "message": record.getMessage(),
            "request_id": f["request_id"],
        }
        for key in ("event", "seconds", "extra"):
            if f[key] not in (None, {}):
                payload[key] = f[key]
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Human-readable console lines.

    Args:
        use_colors: Force colors on or off; decided from the handler's
            stream by configure_logging().
    """

    def __init__(self, use_colors: Optional[bool] = None):
        super().__init__()
        self.use_colors = supports_color() if use_colors is None else use_colors

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{RESET}" if self.use_colors else text

    @staticmethod
    def _timing_color(seconds: float) -> str:
        if seconds < 0.5:
            return GREEN
        return YELLOW if seconds < 3.0 else RED

    def format(self, record: logging.LogRecord) -> str:
        f = _record_fields(record)
        tag = f["tag"]

        parts = [
            self._paint(datetime.fromtimestamp(record.created).strftime("%H:%M:%S"), DIM),
            self._paint(f"[{tag:^7}]", _TAG_COLORS.get(tag, "")),
        ]
        if f["request_id"] != "-":
            parts.append(self._paint(f"({f['request_id']})", DIM + CYAN))
        parts.append(record.getMessage())
        if f["event"]:
            parts.append(self._paint(f"event={f['event']}", BLUE))
        if f["seconds"] is not None:
            parts.append(self._paint(f"{f['seconds']:.3f}s", self._timing_color(f["seconds"])))
        parts.extend(self._paint(f"{k}={v}", _FIELD_COLORS.get(k, DIM)) for k, v in f["extra"].items())

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line
