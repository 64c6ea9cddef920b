"""
Module: billing_engines.document_totals
Responsibility:
    Aggregate calculated lines into document totals: subtotal, document
    discount, round-off and the final payable amount, plus the
    per-component tax sums carried on order/invoice payloads.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - final_total = round2(subtotal - subtotal * discount% / 100 + roundoff).
    - Full recomputation on every call; no cached partial sums, so totals
      can never drift from the lines they were computed from.
    - Order independence: summation is the only cross-line operation.
    - Single currency per document.

Failure modes:
    - RateOutOfRangeError for a document discount outside [0, 100].
    - ValidationError for a non-finite round-off.
    - ValueError when lines mix currencies.

Usage:
    from billing_engines.document_totals import DocumentTotalsAggregator

    totals = DocumentTotalsAggregator().aggregate(
        lines=results,
        discount_percent=Decimal("5"),
        roundoff=Decimal("-0.40"),
    )
    totals.final_total
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from billing_engines.line_item import LineItemResult
from billing_engines.tracer import traced_engine
from billing_kernel.domain.values import (
    DEFAULT_CURRENCY,
    NumberLike,
    Percent,
    round2,
    to_decimal,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.document_totals")

DEFAULT_ROUNDOFF_WARNING_LIMIT = Decimal("1.00")


@dataclass(frozen=True)
class DocumentTotals:
    """
    Totals for one order/invoice.

    Guarantees:
        - ``final_total`` is rounded half-up to 2 places; every other
          amount is at full precision until ``rounded()`` is called.
        - ``roundoff_exceeds_limit`` flags a suspiciously large manual
          adjustment; it never blocks the calculation.
    """

    currency: str
    line_count: int
    gross_amount: Decimal
    items_discount_amount: Decimal
    taxable_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    tax_amount: Decimal
    subtotal: Decimal
    discount_percent: Percent
    discount_amount: Decimal
    roundoff: Decimal
    final_total: Decimal
    roundoff_exceeds_limit: bool = False

    @property
    def amount_before_roundoff(self) -> Decimal:
        return self.subtotal - self.discount_amount

    def rounded(self) -> dict[str, Decimal]:
        """Display/persistence view of every amount, each rounded once."""
        return {
            "gross_amount": round2(self.gross_amount),
            "items_discount_amount": round2(self.items_discount_amount),
            "taxable_amount": round2(self.taxable_amount),
            "cgst_amount": round2(self.cgst_amount),
            "sgst_amount": round2(self.sgst_amount),
            "igst_amount": round2(self.igst_amount),
            "cess_amount": round2(self.cess_amount),
            "tax_amount": round2(self.tax_amount),
            "subtotal": round2(self.subtotal),
            "discount_amount": round2(self.discount_amount),
            "roundoff": round2(self.roundoff),
            "final_total": self.final_total,
        }


class DocumentTotalsAggregator:
    """
    Sum line results into document totals.

    Contract:
        Pure. ``aggregate`` recomputes everything from the given lines.
    """

    def __init__(self, roundoff_warning_limit: NumberLike = DEFAULT_ROUNDOFF_WARNING_LIMIT):
        limit = to_decimal(roundoff_warning_limit, "roundoff_warning_limit")
        if limit < 0:
            raise ValueError("roundoff_warning_limit cannot be negative")
        self._roundoff_warning_limit = limit

    @property
    def roundoff_warning_limit(self) -> Decimal:
        return self._roundoff_warning_limit

    @traced_engine(
        "document_totals", "1.0",
        fingerprint_fields=("lines", "discount_percent", "roundoff"),
    )
    def aggregate(
        self,
        lines: Sequence[LineItemResult],
        discount_percent: NumberLike | Percent = Decimal("0"),
        roundoff: NumberLike = Decimal("0"),
    ) -> DocumentTotals:
        """
        Compute totals for the given lines.

        Preconditions:
            - All lines share one currency.
        Postconditions:
            - final_total == round2(subtotal - discount_amount + roundoff).
        """
        pct = Percent.of(discount_percent, "discount_percent")
        adjustment = to_decimal(roundoff, "roundoff")

        currencies = {line.currency for line in lines}
        if len(currencies) > 1:
            raise ValueError(f"Document lines mix currencies: {sorted(currencies)}")
        currency = currencies.pop() if currencies else DEFAULT_CURRENCY

        zero = Decimal("0")
        gross = sum((line.base_amount for line in lines), zero)
        items_discount = sum((line.discount_amount for line in lines), zero)
        taxable = sum((line.taxable_amount for line in lines), zero)
        cgst = sum((line.cgst_amount for line in lines), zero)
        sgst = sum((line.sgst_amount for line in lines), zero)
        igst = sum((line.igst_amount for line in lines), zero)
        cess = sum((line.cess_amount for line in lines), zero)
        subtotal = sum((line.total_amount for line in lines), zero)

        discount_amount = pct.of_amount(subtotal)
        final_total = round2(subtotal - discount_amount + adjustment)

        exceeds = abs(adjustment) > self._roundoff_warning_limit
        if exceeds:
            logger.warning("roundoff_exceeds_limit", extra={
                "roundoff": str(adjustment),
                "limit": str(self._roundoff_warning_limit),
                "final_total": str(final_total),
            })

        logger.debug("document_totals_calculated", extra={
            "line_count": len(lines),
            "subtotal": str(subtotal),
            "discount_amount": str(discount_amount),
            "roundoff": str(adjustment),
            "final_total": str(final_total),
        })

        return DocumentTotals(
            currency=currency,
            line_count=len(lines),
            gross_amount=gross,
            items_discount_amount=items_discount,
            taxable_amount=taxable,
            cgst_amount=cgst,
            sgst_amount=sgst,
            igst_amount=igst,
            cess_amount=cess,
            tax_amount=cgst + sgst + igst + cess,
            subtotal=subtotal,
            discount_percent=pct,
            discount_amount=discount_amount,
            roundoff=adjustment,
            final_total=final_total,
            roundoff_exceeds_limit=exceeds,
        )
