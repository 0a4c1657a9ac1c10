"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from apigovernor.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
)


def _record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        """Governor context fields are promoted to the top level."""
        record = _record("Call denied")
        record.governor = "meta"
        record.cache_key = "campaigns_act_1"
        record.reason = "budget"
        record.retry_after = 12.5

        data = json.loads(JSONFormatter().format(record))

        assert data["governor"] == "meta"
        assert data["cache_key"] == "campaigns_act_1"
        assert data["reason"] == "budget"
        assert data["retry_after"] == 12.5
        assert "extra" not in data

    def test_json_format_with_extra_fields(self):
        record = _record("Custom event")
        record.custom_field = "custom_value"

        data = json.loads(JSONFormatter().format(record))
        assert data["extra"]["custom_field"] == "custom_value"

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text


class TestContextFilter:

    def test_adds_default_fields(self):
        record = _record()
        assert ContextFilter().filter(record) is True
        for field in ContextFilter.CONTEXT_DEFAULTS:
            assert hasattr(record, field)

    def test_preserves_existing_values(self):
        record = _record()
        record.governor = "existing"
        ContextFilter().filter(record)
        assert record.governor == "existing"


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        with patch("apigovernor.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"
            config = get_logging_config()

        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"
        assert config["loggers"]["apigovernor"]["level"] == "INFO"

    def test_structured_format(self):
        with patch("apigovernor.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "debug"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        with patch("apigovernor.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "WARNING"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["formatters"]["json"]["()"] == "apigovernor.core.logging.JSONFormatter"


def test_get_log_context_drops_none():
    context = get_log_context(governor="meta", cache_key=None, attempt=2)
    assert context == {"governor": "meta", "attempt": 2}


def test_get_logger_default_name():
    assert get_logger().name == "apigovernor"
