"""Centralized logging configuration for the compassone package.

Sets up standard Python logging with appropriate levels, formatters,
and handlers (console, rotating file). Every handler carries a filter that
masks registered credential values, so no secret reaches a log sink.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from compassone.domain.redaction import redact

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None
DEFAULT_MAX_LOG_BYTES = 100 * 1024 * 1024
DEFAULT_LOG_BACKUPS = 30


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message or record.args:
            record.msg = cleaned
            record.args = None
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for structured log collection."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    json_format: bool = False,
    max_bytes: int = DEFAULT_MAX_LOG_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUPS,
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, logging.INFO).
        log_format: The format string for plain-text log messages.
        log_file: Optional path to a file for logging output (rotated by size).
        json_format: Emit one JSON object per record instead of plain text.
        max_bytes: Size at which the log file is rotated.
        backup_count: Number of rotated files to keep.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers attached to the root logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter: logging.Formatter = JsonFormatter() if json_format else logging.Formatter(log_format)
    redacting = RedactingFilter()

    # Diagnostics go to stderr so command output on stdout stays clean.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(redacting)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
            )
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}")
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(redacting)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")

    logging.debug(f"Logging configured. Level={logging.getLevelName(log_level)}")


def level_from_name(name: Optional[str], default: int = DEFAULT_LOG_LEVEL) -> int:
    """Maps level names, including the deployment's 'Information'/'Verbose', to logging levels."""
    if not name:
        return default
    aliases = {"INFORMATION": "INFO", "VERBOSE": "DEBUG", "TRACE": "DEBUG"}
    key = str(name).strip().upper()
    level = logging.getLevelName(aliases.get(key, key))
    return level if isinstance(level, int) else default
