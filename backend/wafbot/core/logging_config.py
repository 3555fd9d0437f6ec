"""
Logging Configuration
Sets up structured logging with event correlation and OpenTelemetry integration
"""

from __future__ import annotations

import logging
import logging.config
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace

from wafbot.core.config import settings


# Inbound chat event id for the current invocation (async-safe)
event_id_var: ContextVar[Optional[str]] = ContextVar("event_id", default=None)

_EMOJI_REPLACEMENTS = {
    "✅": "[OK]",
    "❌": "[ERROR]",
    "⚠": "[WARN]",
    "\U0001f6d1": "[STOP]",
    "\U0001f4ca": "[METRIC]",
    "\U0001f4ac": "[CHAT]",
}


def _sanitize_string(value: str) -> str:
    """Replace emoji with ASCII tokens and drop unsupported characters."""
    for emoji, replacement in _EMOJI_REPLACEMENTS.items():
        value = value.replace(emoji, replacement)
    return value.encode("ascii", "ignore").decode("ascii")


class AsciiSanitizingFilter(logging.Filter):
    """Ensure console records only emit ASCII-friendly text."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _sanitize_string(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                _sanitize_string(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class EventContextFilter(logging.Filter):
    """Attach the current event id to stdlib records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.event_id = event_id_var.get() or "-"
        return True


def set_event_context(event_id: Optional[str]) -> None:
    """Bind an inbound event id to the current invocation"""
    event_id_var.set(event_id)


def clear_event_context() -> None:
    event_id_var.set(None)


def _add_event_context(logger, method_name, event_dict):
    event_id = event_id_var.get()
    if event_id:
        event_dict["event_id"] = event_id
    return event_dict


def _add_trace_context(logger, method_name, event_dict):
    """
    Add OpenTelemetry trace context to log records
    """
    span = trace.get_current_span()
    if span.is_recording():
        span_context = span.get_span_context()
        event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def build_logging_config(log_level: str, json_console: bool, log_file: Optional[str] = None) -> Dict[str, Any]:
    """dictConfig for the stdlib side of logging"""
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "json" if json_console else "console",
            "stream": sys.stdout,
            "filters": ["event_context", "ascii_sanitizer"],
        },
    }
    root_handlers = ["console"]
    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "json",
            "filename": log_file,
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "filters": ["event_context"],
        }
        root_handlers.append("file")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "ascii_sanitizer": {"()": "wafbot.core.logging_config.AsciiSanitizingFilter"},
            "event_context": {"()": "wafbot.core.logging_config.EventContextFilter"},
        },
        "formatters": {
            "json": {
                "format": "%(asctime)s %(name)s %(levelname)s %(event_id)s %(message)s",
                "class": "pythonjsonlogger.jsonlogger.JsonFormatter",
            },
            "console": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(event_id)s] %(message)s",
            },
        },
        "handlers": handlers,
        "loggers": {
            "": {
                "level": log_level,
                "handlers": root_handlers,
            },
            "uvicorn.access": {"level": "INFO", "handlers": root_handlers, "propagate": False},
            # AWS SDK and HTTP client chatter
            "botocore": {"level": "WARNING"},
            "boto3": {"level": "WARNING"},
            "urllib3": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
    }


def setup_logging() -> None:
    """
    Configure structured logging with event and trace correlation
    """
    if settings.is_development:
        renderer = structlog.processors.KeyValueRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            _add_event_context,
            _add_trace_context,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        build_logging_config(
            log_level=settings.log_level,
            json_console=not settings.is_development,
            log_file=settings.log_file,
        )
    )

    logger = logging.getLogger(__name__)
    logger.info("[OK] Logging configured - Level: %s", settings.log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured structlog logger

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


def preview(text: str, limit: int = 100) -> str:
    """Single-line preview of a long message for log output"""
    flat = text.replace("\\", "").replace("\n", " ")
    if len(flat) > limit:
        return flat[: limit - 3] + "..."
    return flat
