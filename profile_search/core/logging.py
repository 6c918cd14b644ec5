"""Structured logging module for profile-search-service.

This module provides:
- JSONFormatter with timestamp, level, service, correlation_id, module, message
- RotatingFileHandler writing JSON lines to an optional log file
- CorrelationIdFilter for X-Request-ID propagation
- Log level configurable via PROFILE_SEARCH_LOG_LEVEL env var
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


SERVICE_NAME = "profile-search"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current request context."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID from context."""
    _correlation_id.set(None)


class JSONFormatter(logging.Formatter):
    """JSON log formatter with standard fields."""

    def __init__(self, service_name: str = SERVICE_NAME, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = getattr(record, "correlation_id", "-")

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "correlation_id": correlation_id,
            "module": record.module,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class CorrelationIdFilter(logging.Filter):
    """Filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = get_correlation_id()
        record.correlation_id = correlation_id if correlation_id else "-"
        return True


def get_log_level_from_env(service_prefix: str = "PROFILE_SEARCH") -> int:
    """Get log level from PROFILE_SEARCH_LOG_LEVEL env var."""
    env_var = f"{service_prefix}_LOG_LEVEL"
    level_str = os.environ.get(env_var, "INFO").upper()
    level = getattr(logging, level_str, None)
    return level if isinstance(level, int) else logging.INFO


def create_file_handler(
    log_file_path: str,
    service_name: str = SERVICE_NAME,
    max_bytes: int = 10_485_760,
    backup_count: int = 5,
) -> RotatingFileHandler:
    """Create a rotating file handler for JSON logs."""
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=log_file_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(JSONFormatter(service_name=service_name))
    handler.addFilter(CorrelationIdFilter())
    return handler


def setup_structured_logging(
    logger_name: str = "profile_search",
    service_name: str = SERVICE_NAME,
    log_file_path: str | None = None,
    log_level: int | None = None,
) -> logging.Logger:
    """Attach JSON console (and optional file) handlers to the package logger.

    Module loggers created with ``logging.getLogger(__name__)`` inside the
    ``profile_search`` package propagate to this logger.
    """
    if log_level is None:
        log_level = get_log_level_from_env()

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter(service_name=service_name))
    console_handler.addFilter(CorrelationIdFilter())
    logger.addHandler(console_handler)

    if log_file_path:
        try:
            file_handler = create_file_handler(log_file_path, service_name)
            file_handler.setLevel(log_level)
            logger.addHandler(file_handler)
        except PermissionError:
            logger.warning("Cannot write to %s, file logging disabled", log_file_path)

    logger.propagate = False
    return logger

