"""
Tests for structured logging configuration and JSON formatter.
"""
import json
import logging
import sys

import pytest

from catrules.config import Settings
from catrules.logging_config import (
    JSONFormatter,
    build_logging_config,
    get_logger,
    setup_logging,
)


def _record(level=logging.INFO, msg="Test message", exc_info=None):
    return logging.LogRecord(
        name="catrules.rules",
        level=level,
        pathname="rules.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture
def restore_package_logger():
    """Undo setup_logging so caplog keeps seeing package records."""
    package_logger = logging.getLogger("catrules")
    saved = (package_logger.level, package_logger.propagate, package_logger.handlers[:])
    yield package_logger
    package_logger.setLevel(saved[0])
    package_logger.propagate = saved[1]
    package_logger.handlers[:] = saved[2]


class TestJSONFormatter:
    def test_basic_log_entry(self):
        log_entry = json.loads(JSONFormatter().format(_record()))

        assert "timestamp" in log_entry
        assert log_entry["level"] == "INFO"
        assert log_entry["logger"] == "catrules.rules"
        assert log_entry["message"] == "Test message"
        assert "source" not in log_entry

    def test_structured_fields_from_extra(self):
        record = _record(level=logging.WARNING)
        record.component = "next_item_rule"
        record.ingredient_count = 3

        log_entry = json.loads(JSONFormatter().format(record))

        assert log_entry["component"] == "next_item_rule"
        assert log_entry["ingredient_count"] == 3

    def test_error_includes_source(self):
        log_entry = json.loads(JSONFormatter().format(_record(level=logging.ERROR)))
        assert log_entry["source"] == "rules.py:42"

    def test_exception_is_formatted(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record(level=logging.ERROR, exc_info=sys.exc_info())

        log_entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in log_entry["exception"]


class TestBuildLoggingConfig:
    def test_development_uses_plain_format(self):
        logging_config = build_logging_config(Settings(ENV="development"))
        assert logging_config["handlers"]["console"]["formatter"] == "default"

    def test_production_uses_json(self):
        logging_config = build_logging_config(Settings(ENV="production"))
        assert logging_config["handlers"]["console"]["formatter"] == "json"

    def test_level_from_settings(self):
        logging_config = build_logging_config(Settings(LOG_LEVEL="debug"))
        assert logging_config["loggers"]["catrules"]["level"] == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        logging_config = build_logging_config(Settings(LOG_LEVEL="chatty"))
        assert logging_config["loggers"]["catrules"]["level"] == logging.INFO


class TestSetupLogging:
    def test_configures_package_logger(self, restore_package_logger):
        setup_logging(Settings(ENV="production", LOG_LEVEL="WARNING"))

        assert restore_package_logger.level == logging.WARNING
        assert restore_package_logger.propagate is False
        formatters = [h.formatter for h in restore_package_logger.handlers]
        assert any(isinstance(f, JSONFormatter) for f in formatters)

    def test_get_logger_returns_named_logger(self):
        assert get_logger("catrules.rules") is logging.getLogger("catrules.rules")
