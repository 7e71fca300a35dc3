"""
Tests for flexible verbosity logger module.
"""

# pylint: disable=redefined-outer-name,protected-access

import logging
from unittest.mock import Mock, patch

import pytest

from src.certmigrate.utils.verbosity_logger import FlexibleLogger, get_logger


def _config(level):
    config = Mock()
    config.get = Mock(return_value=level)
    return config


@pytest.fixture
def logger():
    """FlexibleLogger with the default INFO-and-above filter."""
    return FlexibleLogger("certmigrate.test", _config("INFO|WARNING|ERROR|CRITICAL"))


class TestParseEnabledLevels:
    """Tests for level parsing."""

    def test_without_config_manager(self):
        """No configuration means INFO and above."""
        logger = FlexibleLogger("test", None)
        assert logger.enabled_levels == {
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
            logging.CRITICAL,
        }

    def test_pipe_separated_levels(self):
        """Each listed level is enabled, nothing else."""
        logger = FlexibleLogger("test", _config("DEBUG|ERROR"))
        assert logger.enabled_levels == {logging.DEBUG, logging.ERROR}

    def test_whitespace_and_case(self):
        """Level names are trimmed and case-insensitive."""
        logger = FlexibleLogger("test", _config("  debug | Info "))
        assert logger.enabled_levels == {logging.DEBUG, logging.INFO}

    def test_unknown_names_ignored(self):
        """Unknown names are dropped."""
        logger = FlexibleLogger("test", _config("INFO|LOUD"))
        assert logger.enabled_levels == {logging.INFO}

    @pytest.mark.parametrize("value", ["", "NOPE", 42, None])
    def test_unusable_value_falls_back(self, value):
        """Empty or non-string settings use the default levels."""
        logger = FlexibleLogger("test", _config(value))
        assert logging.INFO in logger.enabled_levels
        assert logging.DEBUG not in logger.enabled_levels

    def test_underlying_logger_at_debug(self, logger):
        """The wrapped logger passes everything; filtering happens here."""
        assert logger.logger.level == logging.DEBUG


class TestLoggingMethods:
    """Tests for the level-filtered logging methods."""

    def test_enabled_level_forwarded(self, logger):
        """Enabled levels reach the wrapped logger with their arguments."""
        with patch.object(logger.logger, "log") as mock_log:
            logger.info("Exported %d", 3)
            mock_log.assert_called_once_with(logging.INFO, "Exported %d", 3)

    def test_disabled_level_dropped(self, logger):
        """Disabled levels are swallowed."""
        with patch.object(logger.logger, "log") as mock_log:
            logger.debug("noise")
            mock_log.assert_not_called()

    def test_error_only(self):
        """An ERROR-only filter drops warnings."""
        logger = FlexibleLogger("test", _config("ERROR"))
        with patch.object(logger.logger, "log") as mock_log:
            logger.warning("ignored")
            logger.error("kept", exc_info=True)
            mock_log.assert_called_once_with(logging.ERROR, "kept", exc_info=True)

    def test_is_enabled(self, logger):
        """is_enabled mirrors the parsed set."""
        assert logger.is_enabled(logging.WARNING) is True
        assert logger.is_enabled(logging.DEBUG) is False


class TestGetLogger:
    """Tests for get_logger function."""

    def test_returns_flexible_logger(self):
        """get_logger wraps the named logger."""
        config = _config("INFO")
        result = get_logger("certmigrate.cli", config)

        assert isinstance(result, FlexibleLogger)
        assert result.name == "certmigrate.cli"
        assert result.config_manager is config
