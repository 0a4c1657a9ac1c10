"""Structured logging configuration for the governor.

This module provides a logging setup using Python's standard logging
module, with an optional JSON formatter for log aggregation pipelines.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from apigovernor.core.config import settings


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs log records as JSON objects. Governor context fields are
    promoted to the top level; any other ``extra`` values are nested
    under ``"extra"``.
    """

    # Contextual fields attached by the governor
    CONTEXT_FIELDS = [
        "governor",      # Governor instance name (e.g. per credential)
        "cache_key",     # Cache key of the governed call
        "reason",        # Denial reason (blocked, min_interval, budget)
        "retry_after",   # Seconds until a call may be attempted again
        "duration_ms",   # Wrapped operation duration in milliseconds
    ]

    # LogRecord attributes that are never copied into "extra"
    _RESERVED = frozenset((
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "exc_info", "exc_text", "stack_info",
        "lineno", "funcName", "created", "msecs", "relativeCreated",
        "thread", "threadName", "processName", "process", "message",
        "asctime", "timestamp", "logger", "level", "source", "taskName",
    ))

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation of the log record
        """
        log_data: Dict[str, Any] = {}

        record.message = record.getMessage()

        log_data["timestamp"] = datetime.now().astimezone().isoformat()
        log_data["level"] = record.levelname
        log_data["logger"] = record.name
        log_data["message"] = record.message
        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != "-":
                log_data[field] = value

        for key, value in record.__dict__.items():
            if key in self._RESERVED or key in self.CONTEXT_FIELDS:
                continue
            log_data.setdefault("extra", {})[key] = value

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Logging filter that adds default governor context to records.

    Keeps the ``structured`` text format from failing on records that were
    logged without ``extra=``.
    """

    CONTEXT_DEFAULTS = {
        "governor": None,
        "cache_key": None,
        "reason": None,
        "retry_after": None,
        "duration_ms": None,
    }

    def filter(self, record: logging.LogRecord) -> bool:
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()

    formatters: Dict[str, Any] = {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "structured": {
            "format": (
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                " - governor=%(governor)s - cache_key=%(cache_key)s"
                " - retry_after=%(retry_after)s"
            )
        },
    }

    if log_format == "json":
        formatters["json"] = {
            "()": "apigovernor.core.logging.JSONFormatter",
        }
        default_formatter = "json"
    else:
        default_formatter = "structured" if log_format == "structured" else "standard"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {
                "()": "apigovernor.core.logging.ContextFilter",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": default_formatter,
                "stream": sys.stdout,
                "filters": ["context"],
            },
        },
        "loggers": {
            "apigovernor": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging() -> None:
    """Configure logging for applications embedding the governor."""
    logging.config.dictConfig(get_logging_config())

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str = "apigovernor") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def get_log_context(
    governor: Optional[str] = None,
    cache_key: Optional[str] = None,
    reason: Optional[str] = None,
    retry_after: Optional[float] = None,
    **extra
) -> Dict[str, Any]:
    """Create a log context dictionary for use with the extra parameter.

    Args:
        governor: Governor instance name
        cache_key: Cache key of the call being governed
        reason: Denial reason
        retry_after: Seconds until a call may be attempted again
        **extra: Additional custom fields

    Returns:
        Dictionary suitable for passing as extra= parameter to logging calls

    Example:
        >>> logger.warning(
        ...     "Call denied",
        ...     extra=get_log_context(governor="meta", reason="budget"),
        ... )
    """
    context = {
        "governor": governor,
        "cache_key": cache_key,
        "reason": reason,
        "retry_after": retry_after,
    }
    context.update(extra)
    return {k: v for k, v in context.items() if v is not None}
