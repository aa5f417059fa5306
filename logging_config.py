"""
Logging configuration for the signal sampler.

Provides structured logging with JSON format, configurable log levels,
and file output with rotation.

Usage:
    from logging_config import setup_logging, get_logger

    # Call once at application startup
    setup_logging()

    # Get a logger for your module
    logger = get_logger(__name__)
    logger.info('Sampling started', extra={'interface': 'wlan0'})

Environment variables:
    SIGNAL_SAMPLER_LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    SIGNAL_SAMPLER_LOG_FILE: Path to log file (no file logging when unset)
    SIGNAL_SAMPLER_LOG_FORMAT: 'json' for structured logging, 'text' for human-readable
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LEVEL_ENV = 'SIGNAL_SAMPLER_LOG_LEVEL'
FILE_ENV = 'SIGNAL_SAMPLER_LOG_FILE'
FORMAT_ENV = 'SIGNAL_SAMPLER_LOG_FORMAT'

LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'WARN': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}

# LogRecord attributes that are never reported as extra fields
STANDARD_ATTRS = frozenset(
    {
        'name',
        'msg',
        'args',
        'created',
        'filename',
        'funcName',
        'levelname',
        'levelno',
        'lineno',
        'module',
        'msecs',
        'pathname',
        'process',
        'processName',
        'relativeCreated',
        'stack_info',
        'exc_info',
        'exc_text',
        'thread',
        'threadName',
        'taskName',
        'message',
    }
)


def extra_fields(record: logging.LogRecord) -> dict:
    """Return the fields passed through ``extra=`` for a record."""
    return {
        k: v
        for k, v in record.__dict__.items()
        if k not in STANDARD_ATTRS and not k.startswith('_')
    }


class JsonFormatter(logging.Formatter):
    """
    Formats log records as JSON for structured logging.

    Output includes timestamp, level, logger name, message, and any extra fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.pathname:
            log_data['location'] = {
                'file': record.pathname,
                'line': record.lineno,
                'function': record.funcName,
            }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        extras = extra_fields(record)
        if extras:
            log_data['extra'] = extras

        # Captured iwconfig text is often non-ASCII (ESSIDs, localized errors)
        return json.dumps(log_data, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """
    Human-readable formatter with consistent structure.

    Format: TIMESTAMP | LEVEL | LOGGER | MESSAGE [extra fields]
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')

        base = f'{timestamp} | {record.levelname:8} | {record.name:20} | {record.getMessage()}'

        extras = extra_fields(record)
        if extras:
            extra_str = ' '.join(f'{k}={v}' for k, v in extras.items())
            base = f'{base} [{extra_str}]'

        if record.exc_info:
            base = f'{base}\n{self.formatException(record.exc_info)}'

        return base


def get_log_level(default: str = 'WARNING') -> int:
    """
    Get log level from environment variable.

    Args:
        default: Default level if SIGNAL_SAMPLER_LOG_LEVEL is not set

    Returns:
        Logging level constant (e.g., logging.WARNING)
    """
    level_name = os.environ.get(LEVEL_ENV, default).upper()
    return LEVEL_MAP.get(level_name, logging.WARNING)


def get_formatter(log_format: Optional[str] = None) -> logging.Formatter:
    """
    Get formatter for the given format name.

    Falls back to SIGNAL_SAMPLER_LOG_FORMAT when no name is given.

    Returns:
        JsonFormatter if format is 'json', TextFormatter otherwise
    """
    if log_format is None:
        log_format = os.environ.get(FORMAT_ENV, 'text')
    if log_format.lower() == 'json':
        return JsonFormatter()
    return TextFormatter()


def setup_logging(
    level: Optional[int] = None,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
) -> None:
    """
    Configure logging for the application.

    Sets up a console handler and, when a log file is configured, a rotating
    file handler. Should be called once at application startup.

    Args:
        level: Log level (default: from SIGNAL_SAMPLER_LOG_LEVEL env var or WARNING)
        log_file: Path to log file (default: from SIGNAL_SAMPLER_LOG_FILE env var)
        log_format: 'json' or 'text' (default: from SIGNAL_SAMPLER_LOG_FORMAT env var)
        max_bytes: Maximum size of each log file before rotation
        backup_count: Number of backup files to keep
    """
    if level is None:
        level = get_log_level()

    formatter = get_formatter(log_format)

    if log_file is None:
        log_file = os.environ.get(FILE_ENV)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.NOTSET)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8',
            )
            file_handler.setLevel(logging.NOTSET)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(
                f'Could not set up file logging to {log_file}: {e}',
                extra={'component': 'logging_config'},
            )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given name.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
