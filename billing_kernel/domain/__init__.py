"""
Pure domain layer.

Immutable value objects with NO dependencies on:
- HTTP clients or persistence
- Ambient global state (tenant/user context is passed explicitly)
- Time (use an injected Clock)
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.context import RequestContext, generate_document_number
from billing_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from billing_kernel.domain.values import (
    DEFAULT_CURRENCY,
    Currency,
    Money,
    Percent,
    format_amount,
    round2,
    to_decimal,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "RequestContext",
    "generate_document_number",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DEFAULT_CURRENCY",
    "Currency",
    "Money",
    "Percent",
    "format_amount",
    "round2",
    "to_decimal",
]
