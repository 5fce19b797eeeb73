"""
Logger configuration for the AIVA digital asset management API.

One place configures the root logger for the whole service: colored console
output for humans, JSON records for log shippers, and rotating files split into
a general log and an error-only log. Modules get their logger through
``get_logger`` and use the small helpers at the bottom for recurring events
(database access, storage, embeddings, assistant tool calls).
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import json

from aiva.core.config import settings


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        # Color a copy so file handlers sharing the record stay plain
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        record.levelname = f"{color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename', 'module',
    'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName', 'created', 'msecs',
    'relativeCreated', 'thread', 'threadName', 'processName', 'process', 'getMessage',
    'taskName', 'message', 'asctime',
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        # Fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LoggerConfig:
    """Owns the root logger's handlers for the API process."""

    def __init__(self, log_dir: str = "logs", log_file: str = "aiva.log",
                 error_file: str = "aiva-error.log",
                 max_file_size: int = 10 * 1024 * 1024, backup_count: int = 5):
        self.log_dir = Path(log_dir)
        self.log_file = log_file
        self.error_file = error_file
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.json_format = False

    def _formatter(self, colored: bool = False, with_location: bool = False) -> logging.Formatter:
        if self.json_format:
            return JSONFormatter()
        fmt = PLAIN_FORMAT + ('\n%(pathname)s:%(lineno)d' if with_location else '')
        formatter_cls = ColoredFormatter if colored else logging.Formatter
        return formatter_cls(fmt, datefmt=DATE_FORMAT)

    def _rotating_handler(self, filename: str, level: int,
                          with_location: bool = False) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
        )
        handler.setLevel(level)
        handler.setFormatter(self._formatter(with_location=with_location))
        return handler

    def configure(self, level: str = 'INFO', console: bool = True,
                  file: bool = True, json_format: bool = False) -> None:
        """
        Replace the root logger's handlers.

        Args:
            level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            console: Log to stdout
            file: Log to rotating files under ``log_dir``; errors also go to a
                separate file with source locations
            json_format: Emit one JSON object per record instead of text
        """
        level_value = getattr(logging, level.upper())
        self.json_format = json_format

        handlers = []
        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level_value)
            console_handler.setFormatter(self._formatter(colored=True))
            handlers.append(console_handler)

        if file:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handlers.append(self._rotating_handler(self.log_file, level_value))
            handlers.append(self._rotating_handler(self.error_file, logging.ERROR, with_location=True))

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(level_value)
        for handler in handlers:
            root_logger.addHandler(handler)

        # Access logs are written by the request middleware
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)


logger_config = LoggerConfig()


def setup_logging(level: str = 'INFO', console: bool = True,
                  file: bool = True, json_format: bool = False) -> None:
    logger_config.configure(level=level, console=console, file=file, json_format=json_format)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logger_config.get_logger(name)


def log_request(logger: logging.Logger, method: str, url: str, status_code: int,
                response_time: float, **extra):
    """Log HTTP request details."""
    logger.info(f"{method} {url} - {status_code} - {response_time:.3f}s", extra=extra)


def log_database_operation(logger: logging.Logger, operation: str, table: str,
                           record_id: Optional[str] = None, **extra):
    """Log database operations."""
    message = f"DB {operation} on {table}"
    if record_id:
        message += f" (ID: {record_id})"
    logger.debug(message, extra=extra)


def log_storage_operation(logger: logging.Logger, operation: str, key: str, **extra):
    """Log object storage operations."""
    logger.info(f"Storage {operation} {key}", extra=extra)


def log_tool_call(logger: logging.Logger, tool: str, tenant_id: str, status: str, **extra):
    """Log assistant tool executions."""
    logger.info(f"Tool {tool} {status} (tenant: {tenant_id})", extra=extra)


def log_embedding_operation(logger: logging.Logger, operation: str,
                            asset_id: str, tenant_id: str, **extra):
    """Log embedding operations."""
    logger.info(f"Embedding {operation} for asset {asset_id} (tenant: {tenant_id})",
                extra=extra)


# Initialize with configured defaults
setup_logging(level=settings.LOG_LEVEL, file=settings.LOG_TO_FILE, json_format=settings.LOG_JSON)
