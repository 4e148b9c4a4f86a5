"""Tests for the numeric logging level system."""
from __future__ import annotations

import io
import json
import logging
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    from tts_gateway.core.logging import configure_logging, set_request_id

    set_request_id("-")
    configure_logging(level=2, force=True)


class TestLogLevelEnum:
    def test_level_enum_values(self):
        from tts_gateway.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4
        assert LogLevel.MINIMAL < LogLevel.DEBUG


class TestLevelCoercion:
    """Test level coercion from various input types."""

    def test_level_from_int(self):
        from tts_gateway.core.logging import LogLevel, coerce_level

        assert coerce_level(1) == LogLevel.MINIMAL
        assert coerce_level(4) == LogLevel.DEBUG

    def test_level_from_names(self):
        """Both our names and Python's level names are accepted, in any case."""
        from tts_gateway.core.logging import LogLevel, coerce_level

        assert coerce_level("verbose") == LogLevel.VERBOSE
        assert coerce_level("INFO") == LogLevel.NORMAL
        assert coerce_level("warning") == LogLevel.MINIMAL
        assert coerce_level("3") == LogLevel.VERBOSE

    def test_python_level_ints(self):
        from tts_gateway.core.logging import LogLevel, coerce_level

        assert coerce_level(logging.WARNING) == LogLevel.MINIMAL
        assert coerce_level(logging.INFO) == LogLevel.NORMAL
        assert coerce_level(logging.DEBUG) == LogLevel.DEBUG

    def test_invalid_level_defaults_to_normal(self):
        from tts_gateway.core.logging import LogLevel, coerce_level

        assert coerce_level("invalid") == LogLevel.NORMAL
        assert coerce_level(None) == LogLevel.NORMAL
        assert coerce_level(True) == LogLevel.NORMAL


class TestLevelFiltering:
    """Messages above the configured level are suppressed."""

    def test_minimal(self):
        from tts_gateway.core.logging import configure_logging, debug, error, get_logger, info

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=1, force=True)
            log = get_logger("test_minimal")

            info(log, "info message")
            error(log, "error message")
            debug(log, "debug message")

        output = captured.getvalue()
        assert "error message" in output
        assert "info message" not in output
        assert "debug message" not in output

    def test_verbose(self):
        from tts_gateway.core.logging import configure_logging, debug, get_logger, info, verbose

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=3, force=True)
            log = get_logger("test_verbose")

            info(log, "info message")
            verbose(log, "verbose message")
            debug(log, "debug message")

        output = captured.getvalue()
        assert "info message" in output
        assert "verbose message" in output
        assert "debug message" not in output

    def test_debug_shows_everything(self):
        from tts_gateway.core.logging import configure_logging, debug, get_logger, success, warn

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=4, force=True)
            log = get_logger("test_debug")

            success(log, "success message")
            warn(log, "warn message")
            debug(log, "debug message")

        output = captured.getvalue()
        assert "success message" in output
        assert "warn message" in output
        assert "debug message" in output


class TestConsoleFormat:
    def test_fields_and_request_id(self):
        from tts_gateway.core.logging import configure_logging, get_logger, info, set_request_id

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            set_request_id("rid-123")
            info(get_logger("test_rid"), "request_done", mode="gTTS", seconds=0.25)

        output = captured.getvalue()
        assert "(rid-123)" in output
        assert "request_done" in output
        assert "mode=gTTS" in output
        assert "0.250s" in output

    def test_no_color_when_not_a_tty(self):
        from tts_gateway.core.logging import configure_logging, get_logger, info

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            info(get_logger("test_color"), "plain message")

        assert "\033[" not in captured.getvalue()


class TestEnvOverride:
    def test_log_level_variable(self, monkeypatch):
        from tts_gateway.core.logging import LogLevel, configure_logging, get_level, get_level_name

        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")
        configure_logging(force=True)
        assert get_level() == LogLevel.VERBOSE
        assert get_level_name() == "VERBOSE"


class TestJsonlOutput:
    def test_jsonl_output_format(self, tmp_path, monkeypatch):
        from tts_gateway.core.logging import configure_logging, error, get_logger, info, set_request_id

        monkeypatch.setenv("TTS_GATEWAY_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("TTS_GATEWAY_JSONL_FILE", "test.jsonl")
        configure_logging(level=2, force=True)
        set_request_id("abc")

        log = get_logger("test_jsonl")
        info(log, "cache_hit", mode="gTTS")
        try:
            raise ValueError("kaboom")
        except ValueError as e:
            error(log, "unhandled_error", exc_info=e)

        root = logging.getLogger()
        for handler in root.handlers:
            handler.flush()
            handler.close()

        lines = [json.loads(line) for line in (tmp_path / "test.jsonl").read_text(encoding="utf-8").splitlines() if line]
        by_message = {line["message"]: line for line in lines}

        hit = by_message["cache_hit"]
        assert hit["level"] == 2
        assert hit["tag"] == "INFO"
        assert hit["request_id"] == "abc"
        assert hit["extra"] == {"mode": "gTTS"}

        failed = by_message["unhandled_error"]
        assert failed["level"] == 1
        assert "kaboom" in failed["exc"]
