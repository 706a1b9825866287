"""Centralized logging configuration for subtitle-translator.

All package loggers are children of ``subtitle_translator``. Records are
rendered as JSON; lines logged through :func:`console_info` and
:func:`console_warning` are printed as plain text on the console so the CLI
stays readable. Context values pushed with :func:`log_context` (session id,
document index, pipeline stage) are attached to every record.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Iterator, Optional

LOGGER_NAME = "subtitle_translator"
LOG_DIR_ENV = "SUBTITLE_TRANSLATOR_LOG_DIR"
LOG_FILE_NAME = "subtitle_translator.log"
DEFAULT_LOG_LEVEL = logging.INFO

_logger: Optional[logging.Logger] = None
_log_context: contextvars.ContextVar[Dict[str, object]] = contextvars.ContextVar(
    "subtitle_translator_log_context", default={}
)

_STANDARD_RECORD_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class JSONLogFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    CONTEXT_FIELDS: tuple[str, ...] = (
        "correlation_id",
        "document_id",
        "session_id",
        "document",
        "stage",
        "event",
        "status",
        "duration_ms",
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }
        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_KEYS
            and key not in self.CONTEXT_FIELDS
            and key != "console"
        }
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text for user-facing lines, JSON for everything else."""

    def __init__(self) -> None:
        super().__init__()
        self._json = JSONLogFormatter()

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        if not getattr(record, "console", False):
            return self._json.format(record)
        message = record.getMessage()
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.lower()}: {message}"
        return message


class LogContextFilter(logging.Filter):
    """Copy the active log context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def resolve_log_dir() -> Optional[Path]:
    """Return the directory for file logging, or ``None`` when disabled."""

    raw = os.environ.get(LOG_DIR_ENV, "").strip()
    return Path(raw).expanduser() if raw else None


def _configure_handlers(logger: logging.Logger) -> None:
    # Logger-level filters never see records from child loggers.
    context_filter = LogContextFilter()
    log_dir = resolve_log_dir()
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(JSONLogFormatter())
        file_handler.addFilter(context_filter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.addFilter(context_filter)
    logger.addHandler(console_handler)


def setup_logging(log_level: int = DEFAULT_LOG_LEVEL) -> logging.Logger:
    """Configure the package logger once and return it."""
    global _logger

    if _logger is None:
        logger = logging.getLogger(LOGGER_NAME)
        logger.propagate = False
        _configure_handlers(logger)
        _logger = logger
    configure_logging_level(log_level=log_level)
    return _logger


def get_logger() -> logging.Logger:
    """Return the package logger, configuring it on first use."""

    return _logger if _logger is not None else setup_logging()


def configure_logging_level(debug_enabled: bool = False, log_level: Optional[int] = None) -> int:
    """Set the package logger and handler level; ``debug_enabled`` selects DEBUG."""

    logger = get_logger()
    if log_level is None:
        log_level = logging.DEBUG if debug_enabled else DEFAULT_LOG_LEVEL
    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.setLevel(log_level)
    return log_level


def push_log_context(**values: object) -> contextvars.Token[Dict[str, object]]:
    """Merge non-``None`` ``values`` into the log context and return a reset token."""

    current = dict(_log_context.get())
    current.update({key: value for key, value in values.items() if value is not None})
    return _log_context.set(current)


@contextlib.contextmanager
def log_context(**values: object) -> Iterator[None]:
    """Attach ``values`` to every record logged inside the block."""

    token = push_log_context(**values)
    try:
        yield
    finally:
        _log_context.reset(token)


def ensure_correlation_context(
    *, correlation_id: Optional[str], document_id: Optional[str] = None
) -> None:
    """Set run-wide identifiers unless an outer caller already did."""

    context = _log_context.get()
    updates: Dict[str, object] = {}
    if "correlation_id" not in context and correlation_id is not None:
        updates["correlation_id"] = correlation_id
    if "document_id" not in context and document_id is not None:
        updates["document_id"] = document_id
    if updates:
        push_log_context(**updates)


def console_info(
    message: str, *args: object, logger_obj: Optional[logging.Logger] = None
) -> None:
    """Log a user-facing status line."""

    (logger_obj or get_logger()).info(message, *args, extra={"console": True})


def console_warning(
    message: str, *args: object, logger_obj: Optional[logging.Logger] = None
) -> None:
    """Log a user-facing warning line."""

    (logger_obj or get_logger()).warning(message, *args, extra={"console": True})


__all__ = [
    "ConsoleFormatter",
    "JSONLogFormatter",
    "LogContextFilter",
    "configure_logging_level",
    "console_info",
    "console_warning",
    "ensure_correlation_context",
    "get_logger",
    "log_context",
    "push_log_context",
    "setup_logging",
]
