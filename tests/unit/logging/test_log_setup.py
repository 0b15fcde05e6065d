# tests/unit/logging/test_log_setup.py — v1
"""Tests for logging/logger.py and logging/handlers.py."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler

import pytest

from pokefusion.logging.context import clear_context, set_attempt, set_run_context, set_stage_context
from pokefusion.logging.handlers import create_file_handler, parse_rotation
from pokefusion.logging.logger import ROOT_LOGGER, JsonFormatter, TextFormatter, setup_logging


def _record(msg: str = "Hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=exc_info,
    )


class TestFormatters:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_json_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "context" not in parsed

    def test_json_carries_run_context(self):
        set_run_context("corr-abc", "u1")
        set_stage_context("describe")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {"correlation_id": "corr-abc", "user_id": "u1", "stage": "describe"}

    def test_json_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys
            parsed = json.loads(JsonFormatter().format(_record(exc_info=sys.exc_info())))
        assert "RuntimeError: boom" in parsed["exception"]

    def test_text_shows_retry_attempt(self):
        set_run_context("corr-1")
        set_stage_context("blend")
        set_attempt(2)
        assert "(blend #2)" in TextFormatter().format(_record())
        set_attempt(1)
        assert "(blend)" in TextFormatter().format(_record())

    def test_text_shows_short_correlation_and_stage(self):
        set_run_context("0123456789abcdef")
        set_stage_context("enhance")
        line = TextFormatter().format(_record("stage done"))
        assert "[0123456789ab]" in line
        assert "(enhance)" in line
        assert "stage done" in line


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger("pokefusion").handlers.clear()

    def test_returns_package_logger(self):
        assert setup_logging().name == ROOT_LOGGER

    def test_setup_installs_single_console_handler(self):
        setup_logging(level="DEBUG", log_format="text")
        setup_logging(level="DEBUG", log_format="text")
        root = logging.getLogger("pokefusion")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_setup_with_file(self, tmp_path):
        setup_logging(log_file=str(tmp_path / "logs" / "app.log"), rotation="1MB", retention=2)
        root = logging.getLogger("pokefusion")
        assert len(root.handlers) == 2
        assert (tmp_path / "logs").is_dir()

    def test_sdk_loggers_quieted(self):
        setup_logging()
        assert logging.getLogger("openai").level == logging.WARNING
        assert logging.getLogger("replicate").level == logging.WARNING


class TestFileHandler:
    @pytest.mark.parametrize("text,expected", [
        ("10MB", ("size", 10 * 1024 ** 2)),
        ("512kb", ("size", 512 * 1024)),
        ("1GB", ("size", 1024 ** 3)),
        ("daily", ("time", "D")),
        ("Midnight", ("time", "midnight")),
    ])
    def test_parse_rotation(self, text, expected):
        assert parse_rotation(text) == expected

    @pytest.mark.parametrize("text", ["", "10bytes", "MB", "monthly"])
    def test_parse_rotation_invalid(self, text):
        with pytest.raises(ValueError):
            parse_rotation(text)

    def test_size_handler(self, tmp_path):
        handler = create_file_handler(str(tmp_path / "a" / "x.log"), rotation="2KB", retention=3)
        assert isinstance(handler, RotatingFileHandler)
        assert handler.maxBytes == 2048
        assert handler.backupCount == 3
        handler.close()

    def test_timed_handler(self, tmp_path):
        handler = create_file_handler(str(tmp_path / "x.log"), rotation="daily", retention=7)
        assert isinstance(handler, TimedRotatingFileHandler)
        assert handler.when == "D"
        assert handler.backupCount == 7
        handler.close()
