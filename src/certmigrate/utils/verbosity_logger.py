"""
Flexible logging utility for CertMigrate.

Provides granular logging control with pipe-separated level configuration,
e.g. ``INFO|ERROR`` emits only info and error messages.
"""

import logging
from typing import Set

_DEFAULT_LEVELS = "INFO|WARNING|ERROR|CRITICAL"


class FlexibleLogger:
    """Logger that only emits the levels listed in ``logging.level``."""

    def __init__(self, name: str, config_manager=None):
        self.logger = logging.getLogger(name)
        self.name = name
        self.config_manager = config_manager
        self.enabled_levels = self._parse_enabled_levels()

        # Handlers are installed by setup_logging; filtering happens here
        self.logger.setLevel(logging.DEBUG)

    def _parse_enabled_levels(self) -> Set[int]:
        """Parse pipe-separated levels from config into a set of logging constants."""
        level_config = (
            self.config_manager.get("logging.level", _DEFAULT_LEVELS)
            if self.config_manager
            else _DEFAULT_LEVELS
        )
        if not isinstance(level_config, str):
            level_config = _DEFAULT_LEVELS

        enabled_levels = set()
        for level_name in level_config.split("|"):
            level = logging.getLevelName(level_name.strip().upper())
            if isinstance(level, int):
                enabled_levels.add(level)

        if not enabled_levels:
            return {logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL}
        return enabled_levels

    def is_enabled(self, level: int) -> bool:
        """Check if ``level`` passes the configured filter."""
        return level in self.enabled_levels

    def log(self, level: int, msg: str, *args, **kwargs):
        """Log ``msg`` at ``level`` if the filter allows it."""
        if self.is_enabled(level):
            self.logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        """Log debug message if verbosity allows."""
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        """Log info message if verbosity allows."""
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        """Log warning message if verbosity allows."""
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        """Log error message if verbosity allows."""
        self.log(logging.ERROR, msg, *args, **kwargs)


def get_logger(name: str, config_manager=None) -> FlexibleLogger:
    """Get a flexible logger instance with granular level control."""
    return FlexibleLogger(name, config_manager)
