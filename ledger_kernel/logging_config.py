"""
Structured JSON logging for the ledger.

Every record is one JSON object per line::

    {"ts": "...", "level": "INFO", "logger": "ledger_kernel.services.ledger",
     "message": "journal_entry_posted", "correlation_id": "...", "seq": 7}

Messages are snake_case event names; details go into ``extra``.  Fields
bound with ``LogContext`` (request correlation id, acting user, the
document or journal entry being worked on) are added to every record
emitted while they are bound.

The level comes from ``configure_logging(level=...)`` or, when not given,
from the ``LEDGER_LOG_LEVEL`` environment variable (default INFO).
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import os
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "ledger_kernel"

# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "actor_id", "document_id", "entry_id")

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"ledger_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


def _var(name: str) -> ContextVar[str | None]:
    try:
        return _context[name]
    except KeyError:
        raise KeyError(f"Unknown log context field: {name}") from None


class LogContext:
    """
    Context-variable fields added to every log record.

    Safe across threads and asyncio tasks: each request handled by the API
    sees only its own correlation id.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Set fields for the rest of the current context; None is ignored."""
        for name, value in fields.items():
            var = _var(name)
            if value is not None:
                var.set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {name: var.get() for name, var in _context.items() if var.get() is not None}

    @staticmethod
    def clear() -> None:
        for var in _context.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set fields for the ``with`` block and restore the previous values."""
        tokens = [
            (_var(name), _var(name).set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """
    ``exc_type``/``exc_message`` for any exception, plus ``exc_code`` and
    the public attributes of ledger errors (``exc_step``,
    ``exc_period_code``, ``exc_document_id``, ...).
    """
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_") or name in ("args", "message", "code"):
            continue
        fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.ledger")`` -> ``ledger_kernel.services.ledger``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def _level_from_env() -> int:
    name = os.environ.get("LEDGER_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"LEDGER_LOG_LEVEL: unknown level {name!r}")
    return level


def configure_logging(
    *,
    level: int | None = None,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach the JSON handler to the ``ledger_kernel`` logger; later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    ledger_logger = logging.getLogger(_LOGGER_PREFIX)
    ledger_logger.setLevel(level if level is not None else _level_from_env())
    ledger_logger.propagate = False

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    ledger_logger.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and the configured flag.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    ledger_logger = logging.getLogger(_LOGGER_PREFIX)
    ledger_logger.handlers.clear()
    ledger_logger.setLevel(logging.WARNING)
