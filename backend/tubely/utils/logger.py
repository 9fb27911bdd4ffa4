"""
Logging Configuration Module for Tubely

Provides JSON or plain-text log output for the whole process, routes Uvicorn's
loggers through the same formatter, and offers a LoggerAdapter that stamps
request context (video_id, user_id) onto every record.

Usage:
    from tubely.utils.logger import add_log_context, setup_logging

    setup_logging(log_level="INFO", json_logs=True)

    logger = logging.getLogger(__name__)
    ctx_logger = add_log_context(logger, video_id=str(video_id), user_id=str(user_id))
    ctx_logger.info("Uploading thumbnail")
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict


# =============================================================================
# Constants
# =============================================================================

LOG_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Libraries whose INFO output drowns out request logs
THIRD_PARTY_LOGGERS: list = [
    "motor",
    "pymongo",
    "boto3",
    "botocore",
    "s3transfer",
    "urllib3",
    "multipart",
    "python_multipart",
    "asyncio",
]


# =============================================================================
# JSON Formatting
# =============================================================================


class LogJSONEncoder(json.JSONEncoder):
    """Encoder that falls back to str() for values json cannot serialize."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        if isinstance(obj, (set, frozenset)):
            return list(obj)
        try:
            return str(obj)
        except Exception:
            return f"<non-serializable: {type(obj).__name__}>"


class JSONFormatter(logging.Formatter):
    """
    Logging formatter that renders each record as a single JSON object.

    Extra fields passed via ``extra={...}`` or a LoggerAdapter are collected
    under the ``extra`` key.

    Example output:
        {"timestamp":"2025-01-15T10:30:45.123456+00:00","level":"INFO",
         "logger":"tubely.api.videos","message":"Video uploaded",
         "extra":{"video_id":"...","key":"landscape/abc.mp4"}}
    """

    # Standard LogRecord attributes to exclude from extra fields
    RESERVED_ATTRS: set = {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
        "color_message",
    }

    def __init__(self, include_source_location: bool = False) -> None:
        super().__init__()
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="microseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            log_entry["source"] = {
                "filename": record.filename,
                "lineno": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            exc_type, exc_value, _exc_tb = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "message": str(exc_value) if exc_value else "",
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in self.RESERVED_ATTRS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(
            log_entry,
            cls=LogJSONEncoder,
            ensure_ascii=False,
            separators=(",", ":"),
        )


class StandardFormatter(logging.Formatter):
    """
    Human-readable formatter for local development.

    Format: [TIMESTAMP] LEVEL logger_name: message
    """

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(self) -> None:
        super().__init__(fmt=self.DEFAULT_FORMAT, datefmt=self.DEFAULT_DATE_FORMAT)


# =============================================================================
# Application Logging Setup
# =============================================================================


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure process-wide logging.

    Should be called once at application startup (the FastAPI lifespan does
    this). Installs a stdout handler on the root logger, points the Uvicorn
    loggers at the same formatter, and raises the level of chatty libraries.

    Args:
        log_level: Application log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON; otherwise plain text
        third_party_level: Log level applied to THIRD_PARTY_LOGGERS
    """
    level_str = log_level.upper()
    level = LOG_LEVEL_MAP.get(level_str, logging.INFO)

    if json_logs:
        formatter: logging.Formatter = JSONFormatter(
            include_source_location=level <= logging.DEBUG,
        )
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    _configure_uvicorn_logging(formatter, level)

    third_party_log_level = LOG_LEVEL_MAP.get(third_party_level.upper(), logging.WARNING)
    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(third_party_log_level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s", level_str, json_logs
    )


def _configure_uvicorn_logging(formatter: logging.Formatter, level: int) -> None:
    """Route Uvicorn's loggers through the application formatter."""
    for name, stream in (
        ("uvicorn", sys.stdout),
        ("uvicorn.access", sys.stdout),
        ("uvicorn.error", sys.stderr),
    ):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)


# =============================================================================
# Context Enrichment
# =============================================================================


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges its context into each call's ``extra`` dict
    instead of replacing it.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


def add_log_context(logger: logging.Logger, **kwargs: Any) -> logging.LoggerAdapter:
    """
    Wrap a logger so that every record carries the given context fields.

    Example:
        ctx_logger = add_log_context(logger, video_id="...", user_id="...")
        ctx_logger.error("Upload failed", extra={"key": key})
        # record carries video_id, user_id and key
    """
    return ContextLoggerAdapter(logger, kwargs)


__all__ = [
    "JSONFormatter",
    "StandardFormatter",
    "ContextLoggerAdapter",
    "setup_logging",
    "add_log_context",
    "LOG_LEVEL_MAP",
]
