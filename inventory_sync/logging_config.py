"""
Logging configuration for the inventory sync client.

Every module logs through a child of the ``inventory_sync`` logger. An
embedding application either lets those records propagate into its own
handlers or calls ``setup_logging`` to give the package a handler of its own.

Each session or store operation runs under a request ID that is logged
locally and forwarded to the API as ``X-Request-ID``, so client and server
logs of one operation can be joined.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional, TextIO
from uuid import uuid4

from .config import settings

PACKAGE_LOGGER = "inventory_sync"

request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
operation_context: ContextVar[Optional[str]] = ContextVar("operation", default=None)


def _context_fields() -> Dict[str, str]:
    fields = {}
    request_id = request_id_context.get()
    if request_id:
        fields["request_id"] = request_id
    operation = operation_context.get()
    if operation:
        fields["operation"] = operation
    return fields


class StructuredFormatter(logging.Formatter):
    """
    Log formatter that outputs one JSON object per record.

    Adds the active request ID and operation name, and merges any
    ``extra_fields`` dictionary passed through ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(_context_fields())

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Single-line formatter for interactive use.

    Level names are colored only when ``use_color`` is set.
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, datefmt: Optional[str] = None, use_color: bool = False) -> None:
        super().__init__(datefmt=datefmt)
        self.use_color = use_color

    def _level(self, levelname: str) -> str:
        if not self.use_color:
            return f"{levelname:8}"
        color = self.LEVEL_COLORS.get(levelname, "")
        return f"{color}{levelname:8}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        context = _context_fields()
        log_parts = [self._level(record.levelname), f"[{record.name}]"]
        if "operation" in context:
            log_parts.append(f"[{context['operation']}]")
        if "request_id" in context:
            log_parts.append(f"[req:{context['request_id'][:8]}]")
        log_parts.append(record.getMessage())

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_parts.extend(f"{key}={value}" for key, value in extra_fields.items())

        message = " ".join(log_parts)
        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(
    log_level: Optional[str] = None,
    use_json: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Attach a handler to the package logger.

    Only the ``inventory_sync`` logger is touched; the root logger and
    third-party loggers stay under the embedding application's control.
    Calling it again replaces the handler installed by the previous call.

    Args:
        log_level: Logging level, defaults to ``LOG_LEVEL``
        use_json: JSON output instead of human-readable lines, defaults to ``LOG_JSON``
        stream: Output stream, defaults to stderr

    Returns:
        The configured package logger
    """
    level_name = (log_level or settings.LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    if use_json is None:
        use_json = settings.LOG_JSON
    stream = stream or sys.stderr

    formatter: logging.Formatter
    if use_json:
        formatter = StructuredFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    else:
        formatter = HumanReadableFormatter(
            datefmt="%Y-%m-%d %H:%M:%S",
            use_color=hasattr(stream, "isatty") and stream.isatty(),
        )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(numeric_level)
    logger.propagate = False

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger for a module (typically ``__name__``)."""
    return logging.getLogger(name or PACKAGE_LOGGER)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set request ID in context.

    Args:
        request_id: Request ID to set, generates new UUID if None

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid4())
    request_id_context.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return request_id_context.get()


def clear_request_id() -> None:
    request_id_context.set(None)


@contextmanager
def traced_operation(name: str) -> Iterator[str]:
    """
    Run a block under a fresh request ID tagged with an operation name.

    Nested use inside an already traced block keeps the outer request ID.

    Args:
        name: Operation name, e.g. ``session.login`` or ``products.create``

    Yields:
        The request ID active inside the block
    """
    outer_request_id = request_id_context.get()
    request_token = request_id_context.set(outer_request_id or str(uuid4()))
    operation_token = operation_context.set(name)
    try:
        yield request_id_context.get() or ""
    finally:
        operation_context.reset(operation_token)
        request_id_context.reset(request_token)
