"""
Logging utilities for matrix-backup.

Provides two output formats for the same structured records:
- Single-line JSON, for log collectors
- Human-readable console lines with key=value context, optionally coloured

Context such as the room being synced is attached through ``extra``
fields, usually via :class:`RoomLoggerAdapter`.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

# Attributes every LogRecord has; anything else came in through ``extra``
STANDARD_RECORD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "taskName", "message", "asctime",
    }
)

LEVEL_COLORS = {
    "DEBUG": "\033[33m",
    "INFO": "\033[32m",
    "WARNING": "\033[31m",
    "ERROR": "\033[1;31m",
    "CRITICAL": "\033[1;31m",
}
RESET_COLOR = "\033[0m"
FIELD_COLOR = "\033[36m"

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("aiohttp", "asyncio")


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra`` fields attached to a record."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


class StructuredJsonFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs as single-line JSON objects with consistent fields:
    - timestamp: ISO 8601 format in UTC
    - level: Log level (INFO, WARNING, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - Additional context fields from extra dict
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for key, value in record_extras(record).items():
            # Ensure value is JSON serializable
            try:
                json.dumps(value)
                log_obj[key] = value
            except (TypeError, ValueError):
                log_obj[key] = str(value)

        return json.dumps(log_obj, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter.

    Produces ``2025-04-13T08:23:25+00:00 INF Message key=value ...``
    with the level abbreviated and optional ANSI colours.
    """

    def __init__(self, color: bool = False) -> None:
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat(
            timespec="seconds"
        )
        level = record.levelname[:3]
        if self.color:
            level = f"{LEVEL_COLORS.get(record.levelname, '')}{level}{RESET_COLOR}"

        parts = [timestamp, level, record.getMessage()]
        for key, value in record_extras(record).items():
            if self.color:
                parts.append(f"{FIELD_COLOR}{key}={RESET_COLOR}{value}")
            else:
                parts.append(f"{key}={value}")

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    debug: bool = False,
    json_output: bool = False,
    color: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Configure logging for a backup run.

    Args:
        debug: Log at DEBUG instead of INFO
        json_output: Emit single-line JSON instead of console lines
        color: Colour console output (ignored for JSON)
        stream: Output stream (default: stderr)

    Returns:
        The package logger
    """
    logger = logging.getLogger("matrix_backup")

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        handler.setFormatter(StructuredJsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(color=color))

    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def get_backup_logger(name: str) -> logging.Logger:
    """
    Get a logger for backup components with consistent naming.

    Args:
        name: Component name (e.g., 'engine', 'matrix')

    Returns:
        Logger instance with name 'matrix_backup.{name}'
    """
    return logging.getLogger(f"matrix_backup.{name}")


class RoomLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds room context to all log messages.

    Adds room_id, and once known room_name and room_dir, to every
    record emitted while a room is being synced.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Add extra context to log record."""
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **context: Any) -> "RoomLoggerAdapter":
        """Return a new adapter with additional context."""
        merged = dict(self.extra or {})
        merged.update(context)
        return RoomLoggerAdapter(self.logger, merged)
