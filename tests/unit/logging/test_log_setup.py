"""Tests for logging configuration and setup."""

import io
import json
import logging

import pytest

from fieldsync.logging.config import LogFormat, LoggingConfig, LogLevel, get_logging_config
from fieldsync.logging.formatters import HumanFormatter, JSONFormatter
from fieldsync.logging.logger import get_logger, reset_logging, setup_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    reset_logging()
    yield
    reset_logging()


class TestLoggingConfig:
    def test_defaults(self):
        config = LoggingConfig()
        assert config.log_level == LogLevel.INFO
        assert config.log_format == LogFormat.HUMAN
        assert config.service_name == "fieldsync"
        assert config.include_location is False

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_FORMAT", "json")
        config = LoggingConfig()
        assert config.log_level == LogLevel.DEBUG
        assert config.log_format == LogFormat.JSON

    def test_level_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert LoggingConfig().log_level == LogLevel.WARNING

    def test_quiet_loggers_default_to_aws_libraries(self):
        assert "botocore" in LoggingConfig().quiet_loggers

    def test_get_logging_config_is_cached(self):
        assert get_logging_config() is get_logging_config()


class TestSetupLogging:
    def test_json_format_writes_to_stream(self):
        stream = io.StringIO()
        setup_logging(LoggingConfig(log_format=LogFormat.JSON), stream)

        get_logger("fieldsync.test").info("queued", extra={"item_id": "photo-1"})

        parsed = json.loads(stream.getvalue().strip())
        assert parsed["message"] == "queued"
        assert parsed["item_id"] == "photo-1"

    def test_human_format_without_colors_for_custom_stream(self):
        setup_logging(LoggingConfig(log_format=LogFormat.HUMAN), io.StringIO())
        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter, HumanFormatter)
        assert handler.formatter._use_colors is False

    def test_sets_root_level(self):
        setup_logging(LoggingConfig(log_level=LogLevel.WARNING), io.StringIO())
        assert logging.getLogger().level == logging.WARNING

    def test_settings_level_overrides_config(self):
        setup_logging(LoggingConfig(log_level=LogLevel.WARNING), io.StringIO(), log_level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_json_format_nests_error_fields(self):
        stream = io.StringIO()
        setup_logging(LoggingConfig(log_format=LogFormat.JSON), stream)

        get_logger("fieldsync.test").warning(
            "upload failed", extra={"error": {"error_code": "STORAGE_ERROR", "message": "denied"}}
        )

        parsed = json.loads(stream.getvalue().strip())
        assert parsed["message"] == "upload failed"
        assert parsed["error"]["error_code"] == "STORAGE_ERROR"

    def test_quiets_aws_libraries(self):
        setup_logging(LoggingConfig(log_level=LogLevel.DEBUG), io.StringIO())
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_quiet_loggers_configurable(self):
        setup_logging(LoggingConfig(quiet_loggers=["fieldsync.chatty"]), io.StringIO())
        assert logging.getLogger("fieldsync.chatty").level == logging.WARNING

    def test_second_call_is_noop_without_force(self):
        setup_logging(LoggingConfig(log_format=LogFormat.HUMAN), io.StringIO())
        setup_logging(LoggingConfig(log_format=LogFormat.JSON), io.StringIO())
        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter, HumanFormatter)

    def test_force_reconfigures(self):
        setup_logging(LoggingConfig(log_format=LogFormat.HUMAN), io.StringIO())
        setup_logging(LoggingConfig(log_format=LogFormat.JSON), io.StringIO(), force=True)
        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter, JSONFormatter)

    def test_reset_detaches_only_installed_handler(self):
        setup_logging(LoggingConfig(), io.StringIO())
        other = logging.NullHandler()
        logging.getLogger().addHandler(other)
        try:
            reset_logging()
            assert logging.getLogger().handlers == [other]
        finally:
            logging.getLogger().removeHandler(other)


class TestGetLogger:
    def test_returns_named_logger(self):
        assert get_logger("fieldsync.queue").name == "fieldsync.queue"
