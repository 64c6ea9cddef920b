"""
billing_engines.tracer -- Engine invocation tracer emitting BILLING_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    calculator invocations with a structured trace record: engine_name,
    engine_version, input_fingerprint (SHA-256 of selected keyword
    arguments), duration_ms and outcome.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; inputs are never mutated.

Failure modes:
    - fingerprint_fields naming kwargs that were not passed are recorded
      as "null".
    - Exceptions raised by the engine are re-raised unchanged after an
      ``outcome="rejected"`` trace record carrying the error code.

Usage:
    from billing_engines.tracer import traced_engine

    @traced_engine("verdict", "1.0", fingerprint_fields=("measured_value", "reference"))
    def classify(measured_value, reference):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import time
from collections.abc import Callable
from dataclasses import fields, is_dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from billing_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (int, Decimal, str)):
        return str(value)
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if is_dataclass(value) and not isinstance(value, type):
        return _canonicalize(
            {f.name: getattr(value, f.name) for f in fields(value) if f.compare}
        )
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """Deterministic 16-hex-char SHA-256 prefix over the named kwargs."""
    parts = [f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields]
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def _emit_trace(
    engine_name: str,
    engine_version: str,
    func: Callable,
    fingerprint: str,
    started: float,
    outcome: str,
    **fields: Any,
) -> None:
    _logger.info("BILLING_ENGINE_TRACE", extra={
        "trace_type": "BILLING_ENGINE_TRACE",
        "engine_name": engine_name,
        "engine_version": engine_version,
        "function": func.__qualname__,
        "input_fingerprint": fingerprint,
        "duration_ms": round((time.monotonic() - started) * 1000, 2),
        "outcome": outcome,
        **fields,
    })


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Wrap an engine entry point so every call leaves one trace record.

    Only keyword arguments named in ``fingerprint_fields`` feed the
    fingerprint, so engines are called with keywords at their entry points.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields else ""
            )
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                _emit_trace(
                    engine_name, engine_version, func, fingerprint, started, "rejected",
                    error_code=getattr(exc, "code", type(exc).__name__),
                )
                raise
            _emit_trace(engine_name, engine_version, func, fingerprint, started, "ok")
            return result

        return wrapper

    return decorator
