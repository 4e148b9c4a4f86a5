"""
Structured logging for tts-gateway.

Every log call names an event and attaches keyword fields; the request id
of the HTTP request being served is added automatically.

    from tts_gateway.core.logging import get_logger, info, verbose, error

    log = get_logger("tts-gateway.cache")
    info(log, "cache_enabled", backend="redis")
    verbose(log, "cache_stored", key="3f9a0c1d", bytes=18432)
    error(log, "synthesis_failed", mode="Polly", error=repr(exc))

Levels (LOG_LEVEL or logging.level, names such as INFO also work):
    1 MINIMAL   error
    2 NORMAL    info, warn, success   (default)
    3 VERBOSE   verbose
    4 DEBUG     debug

Handlers:
    console  stdout, colored when stdout is a terminal
    JSONL    rotating file under TTS_GATEWAY_LOG_DIR / logging.log_dir, if set
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from .context import (
    STATE,
    get_level,
    get_level_name,
    get_request_id,
    read_logging_config,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, JsonlFormatter, supports_color
from .levels import TRACE, LogLevel, coerce_level

# Provider SDKs and HTTP clients log every connection at DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore", "botocore", "aiobotocore", "aioboto3", "urllib3")


def _console_handler(level: LogLevel) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level.python_level)
    handler.setFormatter(ColoredConsoleFormatter(use_colors=supports_color(sys.stdout)))
    return handler


def _jsonl_handler(cfg: Dict[str, Any]) -> logging.Handler:
    log_dir = Path(cfg["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / str(cfg.get("jsonl_file", "tts-gateway.jsonl")),
        maxBytes=int(cfg.get("rotate_max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("rotate_backup_count", 5)),
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(TRACE)
    handler.setFormatter(JsonlFormatter())
    return handler


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install the console (and optional JSONL) handler on the root logger.

    Runs once per process unless ``force`` is set; get_logger() calls it.

    Args:
        level: Overrides LOG_LEVEL and the settings file.
        force: Replace handlers installed by an earlier call.
    """
    if STATE.configured and not force:
        return

    cfg = read_logging_config()
    STATE.config = cfg
    STATE.level = coerce_level(level if level is not None else cfg.get("level"))

    root = logging.getLogger()
    root.setLevel(TRACE)
    root.handlers = [_console_handler(STATE.level)]
    if cfg.get("log_dir"):
        root.addHandler(_jsonl_handler(cfg))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(STATE.level.python_level, logging.INFO))

    STATE.configured = True


def get_logger(name: str = "tts-gateway") -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def _emit(
    logger: logging.Logger,
    python_level: int,
    tag: str,
    numeric_level: int,
    message: str,
    fields: Dict[str, Any],
    exc_info: Any = None,
) -> None:
    if numeric_level > STATE.level:
        return
    logger.log(
        python_level,
        message,
        exc_info=exc_info,
        extra={
            "tag": tag,
            "numeric_level": numeric_level,
            "request_id": get_request_id(),
            "event": fields.pop("event", None),
            "seconds": fields.pop("seconds", None),
            "extra_data": fields or None,
        },
    )


def error(logger: logging.Logger, msg: str, exc_info: Any = None, **fields: Any) -> None:
    """Failures that need attention. Shown from MINIMAL up."""
    _emit(logger, logging.ERROR, "ERROR", 1, msg, fields, exc_info)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Degraded but handled (cache down, request rejected)."""
    _emit(logger, logging.WARNING, "WARN", 2, msg, fields)


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.INFO, "INFO", 2, msg, fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.INFO, "SUCCESS", 2, msg, fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.DEBUG, "INFO", 3, msg, fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, TRACE, "DEBUG", 4, msg, fields)


__all__ = [
    "LogLevel",
    "coerce_level",
    "configure_logging",
    "get_logger",
    "get_level",
    "get_level_name",
    "get_request_id",
    "set_request_id",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "error",
    "warn",
    "info",
    "success",
    "verbose",
    "debug",
]
