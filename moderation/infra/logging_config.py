"""
Logging configuration for the moderation console.

Development gets a human-readable console format; every other environment
logs one JSON object per line so the output can be shipped as-is.
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Optional

from moderation.config import get_settings

ROOT_LOGGER_NAME = "moderation"

_STANDARD_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
        "message",
    }
)


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False, default=str)


class LoggingConfig:
    """Configure the package logger once per process."""

    _configured = False

    def __init__(self, level: Optional[str] = None, force: bool = False) -> None:
        if LoggingConfig._configured and not force:
            return
        settings = get_settings()
        level_name = (level or settings.log_level or "INFO").upper()

        logger = logging.getLogger(ROOT_LOGGER_NAME)
        logger.setLevel(getattr(logging, level_name, logging.INFO))
        logger.handlers.clear()

        handler = logging.StreamHandler()
        if settings.environment.lower() == "development":
            handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                )
            )
        else:
            handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        LoggingConfig._configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger namespaced under the package logger."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
