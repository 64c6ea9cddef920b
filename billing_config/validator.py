"""
Configuration Validator (``billing_config.validator``).

Responsibility
--------------
Checks raw configuration data before it is parsed, collecting every
problem instead of stopping at the first one.

Failure modes
-------------
* Errors  -> the configuration MUST NOT be used; ``get_active_config``
  raises ``ConfigValidationError`` listing them.
* Warnings  -> usable, but worth a look.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from billing_config.loader import parse_decimal
from billing_config.schema import TAX_REGIMES
from billing_kernel.domain.currency import CurrencyRegistry

REQUIRED_KEYS: tuple[str, ...] = ("config_id", "version")


class ConfigValidationError(ValueError):
    """Configuration failed validation. ``errors`` lists every problem."""

    code: str = "CONFIG_VALIDATION_FAILED"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


@dataclass
class ConfigValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(data: dict[str, Any]) -> ConfigValidationResult:
    """
    Validate raw configuration data.

    Postconditions:
        - Returns a ``ConfigValidationResult``; data with errors MUST NOT
          be parsed into a ``BillingConfig``.
    """
    result = ConfigValidationResult()

    _validate_required(data, result)
    _validate_currency(data, result)
    _validate_tax_regime(data, result)
    _validate_thresholds(data, result)
    _validate_prefixes(data, result)

    return result


def _validate_required(data: dict[str, Any], result: ConfigValidationResult) -> None:
    for key in REQUIRED_KEYS:
        if key not in data or data[key] in (None, ""):
            result.add_error(f"Missing required key: {key}")
    if "version" in data:
        try:
            int(data["version"])
        except (TypeError, ValueError):
            result.add_error(f"version must be an integer, got {data['version']!r}")


def _validate_currency(data: dict[str, Any], result: ConfigValidationResult) -> None:
    currency = str(data.get("currency", "INR")).upper()
    if not CurrencyRegistry.is_valid(currency):
        result.add_error(f"Unknown currency: {currency}")
    elif CurrencyRegistry.get_decimal_places(currency) != 2:
        result.add_warning(
            f"Currency {currency} does not use 2 decimal places; "
            "round2 will still round to cents"
        )


def _validate_tax_regime(data: dict[str, Any], result: ConfigValidationResult) -> None:
    regime = data.get("default_tax_regime", "intra_state")
    if regime not in TAX_REGIMES:
        result.add_error(
            f"default_tax_regime must be one of {', '.join(TAX_REGIMES)}, got {regime!r}"
        )


def _validate_thresholds(data: dict[str, Any], result: ConfigValidationResult) -> None:
    if "roundoff_warning_limit" in data:
        try:
            limit = parse_decimal(data["roundoff_warning_limit"], "roundoff_warning_limit")
        except ValueError as e:
            result.add_error(str(e))
        else:
            if not limit.is_finite() or limit < 0:
                result.add_error("roundoff_warning_limit must be a non-negative number")

    if "cost_fallback_ratio" in data:
        try:
            ratio = parse_decimal(data["cost_fallback_ratio"], "cost_fallback_ratio")
        except ValueError as e:
            result.add_error(str(e))
        else:
            if not ratio.is_finite() or ratio <= 0 or ratio > Decimal("1"):
                result.add_error("cost_fallback_ratio must be in (0, 1]")


def _validate_prefixes(data: dict[str, Any], result: ConfigValidationResult) -> None:
    prefixes = data.get("document_prefixes") or {}
    if not isinstance(prefixes, dict):
        result.add_error("document_prefixes must be a mapping")
        return

    seen: dict[str, str] = {}
    for kind, prefix in prefixes.items():
        if not isinstance(prefix, str) or not prefix.strip():
            result.add_error(f"document_prefixes.{kind} must be a non-empty string")
            continue
        if prefix in seen:
            result.add_error(
                f"document_prefixes.{kind} duplicates {seen[prefix]} ({prefix!r})"
            )
        seen[prefix] = kind
