"""Log formatters for the referendum core.

JSON and text formatters that plug into the standard library ``logging``
handlers. Context passed through ``extra={"context": {...}}`` is carried
into the formatted output.
"""

import json
import logging
import time
from typing import Any, Dict, Optional


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_context: bool = True,
        include_exception: bool = True,
        timestamp_format: str = "iso",
        indent: Optional[int] = None,
        ensure_ascii: bool = False,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_context = include_context
        self.include_exception = include_exception
        self.timestamp_format = timestamp_format
        self.indent = indent
        self.ensure_ascii = ensure_ascii

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        data: Dict[str, Any] = {}

        if self.include_timestamp:
            data["timestamp"] = self._format_timestamp(record.created)

        if self.include_level:
            data["level"] = record.levelname.lower()

        if self.include_logger:
            data["logger"] = record.name

        context = getattr(record, "context", None)
        if self.include_context and context:
            data["context"] = context

        if self.include_exception and record.exc_info:
            data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        data["message"] = record.getMessage()

        return json.dumps(
            data, indent=self.indent, ensure_ascii=self.ensure_ascii, default=str
        )

    def _format_timestamp(self, timestamp: float) -> str:
        """Format timestamp."""
        if self.timestamp_format == "iso":
            return (
                time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(timestamp))
                + f".{int((timestamp % 1) * 1000000):06d}Z"
            )
        elif self.timestamp_format == "unix":
            return str(timestamp)
        return time.strftime(self.timestamp_format, time.gmtime(timestamp))


class TextFormatter(logging.Formatter):
    """Text log formatter."""

    def __init__(
        self,
        format_string: str = None,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.timestamp_format = timestamp_format
        self.format_string = format_string or self._get_default_format()

    def _get_default_format(self) -> str:
        """Get default format string."""
        parts = []

        if self.include_timestamp:
            parts.append("%(timestamp)s")

        if self.include_level:
            parts.append("[%(level)s]")

        if self.include_logger:
            parts.append("%(logger)s:")

        parts.append("%(message)s")

        return " ".join(parts)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record."""
        format_data = {
            "timestamp": time.strftime(
                self.timestamp_format, time.gmtime(record.created)
            ),
            "level": record.levelname.upper(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        text = self.format_string % format_data
        context = getattr(record, "context", None)
        if context:
            text += " " + " ".join(f"{key}={value}" for key, value in context.items())
        return text
