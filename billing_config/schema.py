"""
BillingConfig schema.

Frozen dataclasses parsed from the YAML configuration set. Values here are
plain data: the tax regime is stored by name so this layer never depends
on the engines that interpret it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

TAX_REGIMES: tuple[str, ...] = ("intra_state", "inter_state")


@dataclass(frozen=True)
class DocumentPrefixes:
    """Prefixes used by ``generate_document_number`` per document kind."""

    purchase_invoice: str = "PINV"
    sales_invoice: str = "SINV"
    test_order: str = "TO"

    def for_kind(self, kind: str) -> str:
        try:
            return getattr(self, kind)
        except AttributeError:
            raise KeyError(f"Unknown document kind: {kind}") from None


@dataclass(frozen=True)
class BillingConfig:
    """
    Runtime configuration for the billing calculators.

    ``checksum`` is the SHA-256 of the source YAML data; two configs with
    the same checksum were loaded from identical settings.
    """

    config_id: str
    version: int
    currency: str = "INR"
    default_tax_regime: str = "intra_state"
    roundoff_warning_limit: Decimal = Decimal("1.00")
    cost_fallback_ratio: Decimal = Decimal("0.7")
    document_prefixes: DocumentPrefixes = field(default_factory=DocumentPrefixes)
    checksum: str = ""
