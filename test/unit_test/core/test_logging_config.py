"""Unit tests for logging configuration module."""

import logging

import pytest

from session_continuity.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    # Drop the console handler installed by setup_logging; pytest's capture handlers are subclasses.
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    root.setLevel(level)


def _console_handler() -> logging.Handler:
    root_logger = logging.getLogger()
    handler = next((h for h in root_logger.handlers if isinstance(h, logging.StreamHandler)), None)
    assert handler is not None
    return handler


class TestSetupLoggingLogLevels:
    """Test setup_logging with different log levels."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("debug", logging.DEBUG),  # Test lowercase
        ],
    )
    def test_setup_logging_with_different_levels(self, log_level, expected_level):
        """Test setup_logging configures correct log level."""
        setup_logging(log_level=log_level, log_format="simple")

        assert _console_handler().level == expected_level

    def test_setup_logging_replaces_handlers(self):
        """Test repeated setup leaves exactly one handler on the root logger."""
        setup_logging(log_level="INFO", log_format="simple")
        setup_logging(log_level="INFO", log_format="simple")

        assert len(logging.getLogger().handlers) == 1


class TestSetupLoggingFormats:
    """Test setup_logging with different log formats."""

    @pytest.mark.parametrize(
        "log_format,expected_format",
        [
            ("simple", SIMPLE_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("json", JSON_FORMAT),
            ("unknown", DETAILED_FORMAT),
        ],
    )
    def test_setup_logging_with_different_formats(self, log_format, expected_format):
        """Test setup_logging configures correct format."""
        setup_logging(log_level="INFO", log_format=log_format)

        assert _console_handler().formatter._fmt == expected_format


class TestModuleLevels:
    """Test per-module levels are applied."""

    def test_module_levels_applied(self):
        """Test third-party loggers are quietened."""
        setup_logging(log_level="DEBUG", log_format="simple")

        for name, level in MODULE_LOG_LEVELS.items():
            assert logging.getLogger(name).level == logging.getLevelName(level)

    def test_get_logger_returns_named_logger(self):
        """Test get_logger is a thin wrapper over logging.getLogger."""
        logger = get_logger("session_continuity.lineage.store")

        assert logger is logging.getLogger("session_continuity.lineage.store")
