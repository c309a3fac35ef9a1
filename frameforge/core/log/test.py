"""Tests for core logging module."""

import logging
from io import StringIO

import pytest

from .lib import get_logger, parse_level, setup_logging


class TestLogging:
    """Test core logging API."""

    @pytest.mark.unit
    def test_get_logger(self) -> None:
        """Verify logger instance creation."""
        logger = get_logger("test")
        assert logger.name == "test"
        assert isinstance(logger, logging.Logger)

    @pytest.mark.unit
    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        assert get_logger().name == "frameforge"

    @pytest.mark.unit
    def test_parse_level(self) -> None:
        assert parse_level("info") == logging.INFO
        assert parse_level("DEBUG") == logging.DEBUG
        assert parse_level(logging.WARNING) == logging.WARNING
        assert parse_level("nonsense") == logging.INFO

    @pytest.mark.unit
    def test_setup_logging_writes_to_stream(self) -> None:
        """Records reach the configured stream, not stdout."""
        stream = StringIO()
        setup_logging(level="debug", stream=stream)
        get_logger("test_setup").debug("test message")

        assert "test_setup - DEBUG - test message" in stream.getvalue()

    @pytest.mark.unit
    def test_setup_logging_log_file(self, tmp_path) -> None:
        log_file = tmp_path / "logs" / "frameforge.log"
        setup_logging(level=logging.INFO, stream=StringIO(), log_file=log_file)
        get_logger("file_test").info("persisted")

        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "persisted" in log_file.read_text(encoding="utf-8")
