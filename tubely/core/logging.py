"""Structured logging with request and upload context.

Records are tagged with the request's correlation ID, the active trace and
span IDs, and whatever upload context (video ID, user ID, upload kind) the
service has bound for the current task. Pipeline helpers such as the ffmpeg
adapter therefore log with the video they are working on without having it
passed in.
"""

import json
import logging
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from tubely.core.tracing import get_span_id, get_trace_id

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
upload_context_var: ContextVar[dict[str, Any]] = ContextVar("upload_context", default={})

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "boto3", "s3transfer", "aiosqlite")

# Attributes every LogRecord has; anything else came from ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "correlation_id",
    "taskName",
}


def get_correlation_id() -> str:
    """Correlation ID of the current request.

    Outside a request the active trace ID is used, and failing that a new
    ID is minted for the rest of the context.
    """
    cid = correlation_id_var.get()
    if cid is not None:
        return cid
    trace_id = get_trace_id()
    if trace_id:
        return trace_id
    cid = uuid.uuid4().hex
    correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


@contextmanager
def upload_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """Bind fields to every record logged inside the block.

    Nested blocks add to (and may shadow) the outer fields.
    """
    merged = {**upload_context_var.get(), **{k: str(v) for k, v in fields.items() if v is not None}}
    token = upload_context_var.set(merged)
    try:
        yield merged
    finally:
        upload_context_var.reset(token)


class ContextFilter(logging.Filter):
    """Copy the correlation ID and bound upload context onto records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id()
        for key, value in upload_context_var.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON document per record."""

    def __init__(self, include_stack_trace: bool = True):
        super().__init__()
        self.include_stack_trace = include_stack_trace

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        trace_id = get_trace_id()
        if trace_id:
            document["trace_id"] = trace_id
            document["span_id"] = get_span_id()

        if record.exc_info:
            document["exception"] = self._exception(record)

        context = self._context(record)
        if context:
            document["context"] = context

        return json.dumps(document, default=str)

    def _exception(self, record: logging.LogRecord) -> dict[str, Any]:
        exc_type, exc_value, exc_tb = record.exc_info
        info: dict[str, Any] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
        }
        # Pipeline errors carry the stage that failed
        stage = getattr(exc_value, "stage", None)
        if stage:
            info["stage"] = stage
        if self.include_stack_trace and exc_tb:
            info["stack_trace"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        return info

    @staticmethod
    def _context(record: logging.LogRecord) -> dict[str, Any]:
        context = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            context[key] = value
        return context


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Replace the root logger's handlers with a single stdout handler.

    Args:
        level: Log level name
        json_format: Emit JSON documents instead of plain text
        include_stack_trace: Include tracebacks in JSON exception info
    """
    log_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(ContextFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter(include_stack_trace=include_stack_trace))
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _log(
    logger: logging.Logger,
    level: int,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    extra["correlation_id"] = get_correlation_id()
    logger.log(level, message, exc_info=exception, extra=extra)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error, with the exception's traceback when given."""
    _log(logger, logging.ERROR, message, exception, **extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.WARNING, message, **extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.INFO, message, **extra)
