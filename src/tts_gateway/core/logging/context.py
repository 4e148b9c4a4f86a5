"""
Logging State: request id and resolved configuration.

The request id lives in a ContextVar, so every line logged while one HTTP
request is served carries it, across awaits and asyncio.to_thread.

Logging settings are read from the ``logging`` section of the settings
file, then overridden by:
    LOG_LEVEL                      level (1-4 or a name)
    TTS_GATEWAY_LOG_DIR            directory for the JSONL file
    TTS_GATEWAY_JSONL_FILE         JSONL file name
    TTS_GATEWAY_LOG_ROTATE_BYTES   rotate after this many bytes
    TTS_GATEWAY_LOG_ROTATE_BACKUP  rotated files kept
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict

import yaml

from .levels import LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")


def get_request_id() -> str:
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


@dataclass
class LoggingState:
    configured: bool = False
    level: LogLevel = LogLevel.NORMAL
    config: Dict[str, Any] = field(default_factory=dict)


STATE = LoggingState()


def get_level() -> LogLevel:
    return STATE.level


def get_level_name() -> str:
    return STATE.level.name


_ENV_STRINGS = {
    "LOG_LEVEL": "level",
    "TTS_GATEWAY_LOG_DIR": "log_dir",
    "TTS_GATEWAY_JSONL_FILE": "jsonl_file",
}
_ENV_INTS = {
    "TTS_GATEWAY_LOG_ROTATE_BYTES": "rotate_max_bytes",
    "TTS_GATEWAY_LOG_ROTATE_BACKUP": "rotate_backup_count",
}


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging settings: environment over settings file over defaults.

    A settings file that can't be read is skipped here; building the
    gateway reports it properly.
    """
    from tts_gateway.core.config import load_settings

    cfg: Dict[str, Any] = {}
    try:
        cfg.update(load_settings(required=False).raw.get("logging") or {})
    except (OSError, yaml.YAMLError):
        pass

    for env_name, key in _ENV_STRINGS.items():
        if os.getenv(env_name):
            cfg[key] = os.environ[env_name]
    for env_name, key in _ENV_INTS.items():
        value = os.getenv(env_name, "")
        if value.isdigit():
            cfg[key] = int(value)
    return cfg
