"""Logging configuration for the referendum core.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where the ``referendum`` logger tree writes and in which format.
"""

import logging
import sys
from enum import Enum
from typing import Optional, TextIO

from ..errors.exceptions import ConfigurationError
from .formatters import JSONFormatter, TextFormatter

ROOT_LOGGER_NAME = "referendum"


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging(self) -> int:
        return getattr(logging, self.name)


class LogConfig:
    """Log configuration."""

    def __init__(
        self,
        name: str = ROOT_LOGGER_NAME,
        level: LogLevel = LogLevel.INFO,
        format_type: str = "json",
        stream: Optional[TextIO] = None,
        propagate: bool = False,
    ):
        if format_type not in ("json", "text"):
            raise ConfigurationError(
                f"Unknown log format: {format_type}",
                config_key="format_type",
                config_value=format_type,
            )
        self.name = name
        self.level = level
        self.format_type = format_type
        self.stream = stream
        self.propagate = propagate

    def create_formatter(self) -> logging.Formatter:
        if self.format_type == "json":
            return JSONFormatter()
        return TextFormatter()


def setup_logging(config: Optional[LogConfig] = None) -> logging.Logger:
    """Install a single stream handler on the configured logger.

    Calling it again replaces the handler installed by a previous call.
    """
    config = config or LogConfig()
    logger = logging.getLogger(config.name)

    for handler in list(logger.handlers):
        if getattr(handler, "_referendum_handler", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(config.stream or sys.stderr)
    handler.setFormatter(config.create_formatter())
    handler._referendum_handler = True

    logger.addHandler(handler)
    logger.setLevel(config.level.to_logging())
    logger.propagate = config.propagate
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger inside the referendum tree."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
