"""
Centralized logging configuration with structured logging support.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import settings

# Generation ID for correlating every log entry of one pipeline run.
# Set by the pipeline at the start of generate().
generation_id_context: ContextVar[Optional[str]] = ContextVar(
    "generation_id", default=None
)

# Structured fields copied from ``extra=`` into JSON entries when present
EXTRA_FIELDS = (
    "requester_id",
    "attempt",
    "model",
    "status_code",
    "error_code",
    "duration_ms",
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for production logging.

    Produces structured log entries with consistent fields for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        generation_id = generation_id_context.get()
        if generation_id:
            log_entry["generation_id"] = generation_id

        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        # Add source location for error-level logs
        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging() -> None:
    """
    Configure logging for the quiz generation service.

    Configures:
    - Log level from settings
    - JSON formatting in production (structured for log aggregators)
    - Human-readable format in development
    - Generation ID correlation via context variables
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    is_production = settings.env == "production"

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if is_production else "default",
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "quizgen": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            # httpx logs every request at INFO
            "httpx": {
                "level": logging.INFO if settings.debug else logging.WARNING,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)
