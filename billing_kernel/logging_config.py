"""
logging_config -- Structured JSON logging for the billing core.

Every billing logger lives under the ``billing_kernel`` namespace and writes
one JSON object per line. Business events use snake_case messages with
their data in ``extra=``; the formatter merges in the LogContext fields
(tenant, user, document) and the structured attributes of billing
exceptions.

Usage:
    configure_logging(level=logging.INFO)
    logger = get_logger("engines.allocation")
    with LogContext.bind(tenant_id="1", document_id="PINV-1"):
        logger.info("allocation_proposed", extra={"allocation_count": 2})
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
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID

LOGGER_NAMESPACE = "billing_kernel"

# ---------------------------------------------------------------------------
# Session context
# ---------------------------------------------------------------------------


def _context_var(name: str) -> ContextVar[str | None]:
    return ContextVar(f"billing_log_{name}", default=None)


class LogContext:
    """
    Fields attached to every record emitted in the current context.

    Backed by contextvars, so concurrent threads or tasks each see their
    own tenant, user and document.
    """

    FIELDS: ClassVar[tuple[str, ...]] = (
        "correlation_id",
        "tenant_id",
        "user_id",
        "document_id",
    )
    _vars: ClassVar[dict[str, ContextVar[str | None]]] = {
        name: _context_var(name) for name in FIELDS
    }

    @classmethod
    def _check(cls, fields: dict[str, Any]) -> None:
        unknown = sorted(set(fields) - set(cls.FIELDS))
        if unknown:
            raise ValueError(f"Unknown log context fields: {unknown}")

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Update the given fields; ``None`` leaves a field as it is."""
        cls._check(fields)
        for name, value in fields.items():
            if value is not None:
                cls._vars[name].set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            name: value
            for name, var in cls._vars.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: Any):
        """
        Set fields for the duration of a ``with`` block.

        Unknown field names are rejected here, before the block is entered.
        Previous values are restored on exit, even if the block raises.
        """
        cls._check(fields)
        return cls._bound({k: str(v) for k, v in fields.items() if v is not None})

    @classmethod
    @contextmanager
    def _bound(cls, fields: dict[str, str]) -> Iterator[type["LogContext"]]:
        tokens: list[tuple[ContextVar[str | None], Token]] = [
            (cls._vars[name], cls._vars[name].set(value))
            for name, value in fields.items()
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


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
        payload.update(self._extra_fields(record, payload))
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _extra_fields(record: logging.LogRecord, taken: dict[str, Any]) -> dict[str, Any]:
        return {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in taken
        }

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # reason, payment_id, excess, ... set by billing exceptions
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger named ``billing_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_setup_lock = threading.Lock()
_is_configured = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the billing namespace.

    Only the first call has any effect until ``reset_logging()``. Records
    do not propagate to the root logger, so host applications that also
    configure logging never see them twice.
    """
    global _is_configured
    with _setup_lock:
        if _is_configured:
            return
        _is_configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.setLevel(level)
    namespace.propagate = False
    namespace.addHandler(handler)


def reset_logging() -> None:
    """Undo ``configure_logging``. Test use only."""
    global _is_configured
    with _setup_lock:
        _is_configured = False
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.handlers.clear()
    namespace.setLevel(logging.NOTSET)
    namespace.propagate = True
