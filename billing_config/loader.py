"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``billing_config.schema`` dataclasses. Callers at runtime go through
``billing_config.get_active_config()`` instead of using this module.

Invariants enforced
-------------------
* Numeric settings become ``Decimal``; YAML floats are converted through
  their text form so ``0.7`` stays exactly ``Decimal("0.7")``.
* ``compute_checksum`` is deterministic for identical data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingConfig, DocumentPrefixes


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (possibly empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a YAML scalar (str, int or float) into a Decimal."""
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"{field_name} must be a number, got {value!r}") from e


def parse_prefixes(data: dict[str, Any]) -> DocumentPrefixes:
    defaults = DocumentPrefixes()
    return DocumentPrefixes(
        purchase_invoice=str(data.get("purchase_invoice", defaults.purchase_invoice)),
        sales_invoice=str(data.get("sales_invoice", defaults.sales_invoice)),
        test_order=str(data.get("test_order", defaults.test_order)),
    )


def parse_config(data: dict[str, Any], checksum: str = "") -> BillingConfig:
    """
    Parse a ``BillingConfig`` from a dict.

    Preconditions:
        - ``data`` contains ``config_id`` and ``version``.
    Raises:
        KeyError: if required keys are missing.
        ValueError: if numeric settings cannot be parsed.
    """
    defaults = BillingConfig(config_id="", version=0)
    return BillingConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        currency=str(data.get("currency", defaults.currency)).upper(),
        default_tax_regime=str(data.get("default_tax_regime", defaults.default_tax_regime)),
        roundoff_warning_limit=parse_decimal(
            data.get("roundoff_warning_limit", defaults.roundoff_warning_limit),
            "roundoff_warning_limit",
        ),
        cost_fallback_ratio=parse_decimal(
            data.get("cost_fallback_ratio", defaults.cost_fallback_ratio),
            "cost_fallback_ratio",
        ),
        document_prefixes=parse_prefixes(data.get("document_prefixes") or {}),
        checksum=checksum,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
