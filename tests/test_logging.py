"""Tests for logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from resonance.config import Environment, Settings
from resonance.logging_config import (
    DevFormatter,
    JSONFormatter,
    get_logger,
    setup_logging,
)


def _record(msg: str = "Test message", level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_format_basic_message(self) -> None:
        """Basic log message is formatted as JSON."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data

    def test_format_includes_file_info(self) -> None:
        """File location is included."""
        data = json.loads(JSONFormatter().format(_record()))
        assert data["file"] == "test.py:10"

    def test_format_with_exception(self) -> None:
        """Exception traceback is included."""
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(_record("Error", logging.ERROR, exc_info)))

        assert "exception" in data
        assert "ValueError" in data["exception"]

    def test_format_with_extra_fields(self) -> None:
        """Fields passed via extra are nested under 'extra'."""
        record = _record()
        record.photo_id = "p1"
        record.links_created = 2

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"] == {"photo_id": "p1", "links_created": 2}

    def test_no_extra_key_without_extra_fields(self) -> None:
        """Records without extras carry no 'extra' key."""
        data = json.loads(JSONFormatter().format(_record()))
        assert "extra" not in data


class TestDevFormatter:
    """Tests for development formatter."""

    def test_format_readable(self) -> None:
        """Output is human-readable."""
        output = DevFormatter().format(_record())

        assert "INFO" in output
        assert "test" in output
        assert "Test message" in output
        assert " | " in output

    def test_extra_fields_appended(self) -> None:
        """Extra fields are appended as sorted key=value pairs."""
        record = _record()
        record.photo_id = "p1"
        record.candidates = 3

        output = DevFormatter().format(record)

        assert output.endswith("| candidates=3 photo_id=p1")


class TestSetupLogging:
    """Tests for logging setup."""

    def test_setup_returns_root_logger(self) -> None:
        """Setup returns root logger."""
        with patch("resonance.logging_config.get_settings") as mock_settings:
            mock_settings.return_value = Settings()
            logger = setup_logging()
            assert logger is logging.getLogger()

    def test_setup_with_custom_level(self) -> None:
        """Custom log level is applied."""
        with patch("resonance.logging_config.get_settings") as mock_settings:
            mock_settings.return_value = Settings()
            logger = setup_logging(level="DEBUG")
            assert logger.level == logging.DEBUG

    def test_setup_json_in_production(self) -> None:
        """JSON formatter is used in production."""
        with patch("resonance.logging_config.get_settings") as mock_settings:
            mock_settings.return_value = Settings(environment=Environment.PRODUCTION)
            logger = setup_logging()
            assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_setup_dev_formatter_in_development(self) -> None:
        """Dev formatter is used in development."""
        with patch("resonance.logging_config.get_settings") as mock_settings:
            mock_settings.return_value = Settings(environment=Environment.DEVELOPMENT)
            logger = setup_logging()
            assert isinstance(logger.handlers[0].formatter, DevFormatter)

    def test_setup_replaces_existing_handlers(self) -> None:
        """Repeated setup leaves a single stdout handler at the chosen level."""
        stale = logging.NullHandler()
        logging.getLogger().addHandler(stale)
        with patch("resonance.logging_config.get_settings") as mock_settings:
            mock_settings.return_value = Settings()
            setup_logging(level="WARNING")
            logger = setup_logging(level="INFO")

        assert stale not in logger.handlers
        assert len(logger.handlers) == 1
        handler = logger.handlers[0]
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stdout
        assert handler.level == logging.INFO

    def test_noisy_loggers_suppressed(self) -> None:
        """Third-party loggers are raised to WARNING."""
        with patch("resonance.logging_config.get_settings") as mock_settings:
            mock_settings.return_value = Settings()
            setup_logging(level="DEBUG")
            assert logging.getLogger("httpx").level == logging.WARNING


class TestGetLogger:
    """Tests for logger factory."""

    def test_get_named_logger(self) -> None:
        """Named logger is returned."""
        logger = get_logger("resonance.discovery")
        assert logger.name == "resonance.discovery"
