"""Referendum logging setup.

Structured JSON and plain text formatters on top of the standard library
``logging`` module.
"""

from .core import ROOT_LOGGER_NAME, LogConfig, LogLevel, get_logger, setup_logging
from .formatters import JSONFormatter, TextFormatter

__all__ = [
    "ROOT_LOGGER_NAME",
    "LogConfig",
    "LogLevel",
    "get_logger",
    "setup_logging",
    "JSONFormatter",
    "TextFormatter",
]
