"""
Structured logging for the clinic assistant.
Every turn gets a correlation ID so the resolution chain can be traced end to end.
"""

import json
import logging
import uuid
from typing import Any
from contextvars import ContextVar

# Correlation ID of the turn currently being resolved
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


class StructuredFormatter(logging.Formatter):
    """
    Renders log records as single-line JSON documents.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record with structured context.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class StructuredLogger:
    """
    Thin wrapper around a stdlib logger that accepts keyword fields.
    Messages are event names (``lookup_completed``) and details go in fields.
    """

    def __init__(self, name: str):
        """
        Initialize structured logger.

        Args:
            name: Logger name (typically __name__)
        """
        self.logger = logging.getLogger(name)

    def _log(
        self, level: int, message: str, exc_info: bool = False, **extra_fields: Any
    ) -> None:
        self.logger.log(level, message, extra={"extra_fields": extra_fields}, exc_info=exc_info)

    def debug(self, message: str, **extra_fields: Any) -> None:
        """Log debug message with context."""
        self._log(logging.DEBUG, message, **extra_fields)

    def info(self, message: str, **extra_fields: Any) -> None:
        """Log info message with context."""
        self._log(logging.INFO, message, **extra_fields)

    def warning(self, message: str, **extra_fields: Any) -> None:
        """Log warning message with context."""
        self._log(logging.WARNING, message, **extra_fields)

    def error(
        self, message: str, exc_info: bool = False, **extra_fields: Any
    ) -> None:
        """
        Log error message with context.

        Args:
            message: Error message
            exc_info: If True, include exception traceback
            **extra_fields: Additional context fields
        """
        self._log(logging.ERROR, message, exc_info=exc_info, **extra_fields)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)


def new_correlation_id() -> str:
    """
    Generate a fresh correlation ID and make it current.

    Returns:
        The generated ID
    """
    correlation_id = uuid.uuid4().hex[:12]
    correlation_id_ctx.set(correlation_id)
    return correlation_id


def configure_logging(
    level: str = "INFO", use_structured: bool = True
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_structured: If True, use structured JSON logging
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)

    if use_structured:
        formatter = StructuredFormatter(
            fmt="%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))
