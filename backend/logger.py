"""
Structured JSON logging for the quote bot.

Provides:
- JSON log formatting with structured fields
- Daily log rotation at midnight
- 30-day log retention
- Automatic log directory creation
- Structured context fields: run_id, metadata
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from typing import Optional, Union


DEFAULT_LOGGER_NAME = "quote_bot"


class JSONLogFormatter(logging.Formatter):
    """
    Custom formatter that outputs logs as JSON.

    Includes structured fields:
    - timestamp: ISO 8601 format
    - level: Log level name (INFO, ERROR, etc.)
    - logger: Name of the emitting logger
    - message: Log message
    - run_id: Optional identifier of the quote run in progress
    - metadata: Optional additional context dict
    - exception: Formatted traceback when exc_info is attached
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON string.

        Args:
            record: LogRecord to format

        Returns:
            JSON string with structured log data
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", None),
            "metadata": getattr(record, "metadata", None) or {}
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = getattr(logging, level.upper(), None)
    return value if isinstance(value, int) else logging.INFO


def setup_logger(
    log_dir: Optional[str] = None,
    logger_name: str = DEFAULT_LOGGER_NAME,
    level: Union[int, str] = logging.INFO,
    console: bool = True
) -> logging.Logger:
    """
    Set up and configure a logger with JSON formatting and daily rotation.

    Args:
        log_dir: Directory for log files. Defaults to LOG_DIR or ./logs
        logger_name: Name for the logger instance
        level: Logging level, as int or name (default: INFO)
        console: Also write JSON lines to stderr

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = os.getenv("LOG_DIR", "logs")

    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(logger_name)
    logger.setLevel(_resolve_level(level))
    logger.propagate = False

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    formatter = JSONLogFormatter()

    log_file = os.path.join(log_dir, f"{logger_name}.log")
    handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    return logger


def get_logger() -> logging.Logger:
    """
    Get the shared quote bot logger.

    Configures it from LOG_DIR / LOG_LEVEL the first time it is requested;
    later calls return the same instance untouched, so an explicit
    setup_logger() call from the entry point is not overwritten.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    if not logger.handlers:
        setup_logger(level=os.getenv("LOG_LEVEL", "INFO"))
    return logger
