"""
Module: billing_engines.line_item
Responsibility:
    Compute the per-line cascade shared by every order/invoice screen:
    base amount, discount, taxable amount, GST components (CGST, SGST,
    IGST, CESS) and line total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel.

Invariants enforced:
    - Exact order: base -> discount -> taxable -> per-component tax ->
      total tax -> total. Full Decimal precision throughout; rounding is
      left to the output boundary (``LineItemResult.rounded``).
    - total_amount == taxable_amount + cgst + sgst + igst + cess.
    - Intra-state (CGST+SGST) and inter-state (IGST) rates never mix.
    - Each line is independent: the calculator never looks at siblings.

Failure modes:
    - NegativeAmountError for a negative unit price, quantity or free quantity.
    - RateOutOfRangeError for a discount or tax rate outside [0, 100].
    - TaxRegimeConflictError when IGST is combined with CGST/SGST.

Usage:
    from billing_engines.line_item import LineItem, LineItemCalculator, TaxRates
    from billing_kernel.domain.values import Money

    result = LineItemCalculator().calculate(
        line=LineItem(
            unit_price=Money.of("100"),
            quantity=Decimal("2"),
            discount_percent=Decimal("10"),
            tax_rates=TaxRates(cgst=Decimal("9"), sgst=Decimal("9")),
        )
    )
    result.total_amount  # Decimal("212.40")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum

from billing_engines.tracer import traced_engine
from billing_kernel.domain.values import Money, NumberLike, Percent, round2, to_decimal
from billing_kernel.exceptions import NegativeAmountError, TaxRegimeConflictError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.line_item")

_TWO = Decimal("2")


class TaxRegime(str, Enum):
    """Which GST components apply to a supply."""

    INTRA_STATE = "intra_state"  # CGST + SGST
    INTER_STATE = "inter_state"  # IGST


TAX_COMPONENTS: tuple[str, ...] = ("cgst", "sgst", "igst", "cess")


@dataclass(frozen=True)
class TaxRates:
    """
    GST component rates for one line, each a percentage in [0, 100].

    Contract:
        Raw Decimal/int/str values are accepted and normalised to Percent.
    Guarantees:
        - IGST > 0 implies CGST == SGST == 0, and vice versa.
    """

    cgst: Percent = Decimal("0")
    sgst: Percent = Decimal("0")
    igst: Percent = Decimal("0")
    cess: Percent = Decimal("0")

    def __post_init__(self) -> None:
        for name in TAX_COMPONENTS:
            object.__setattr__(self, name, Percent.of(getattr(self, name), f"{name}_rate"))
        if not self.igst.is_zero and not (self.cgst.is_zero and self.sgst.is_zero):
            raise TaxRegimeConflictError(self.cgst.value, self.sgst.value, self.igst.value)

    @classmethod
    def from_gst(
        cls,
        gst_rate: NumberLike,
        regime: TaxRegime = TaxRegime.INTRA_STATE,
        cess: NumberLike = Decimal("0"),
    ) -> TaxRates:
        """
        Split a single GST rate (as stored on products and tests).

        Intra-state supplies get half as CGST and half as SGST; inter-state
        supplies get the full rate as IGST.
        """
        gst = Percent.of(gst_rate, "gst_rate")
        if regime == TaxRegime.INTER_STATE:
            return cls(igst=gst.value, cess=cess)
        half = gst.value / _TWO
        return cls(cgst=half, sgst=half, cess=cess)

    @property
    def regime(self) -> TaxRegime:
        return TaxRegime.INTER_STATE if not self.igst.is_zero else TaxRegime.INTRA_STATE

    @property
    def gst_rate(self) -> Decimal:
        """Combined GST rate, excluding cess."""
        return self.cgst.value + self.sgst.value + self.igst.value


@dataclass(frozen=True)
class LineItem:
    """
    One row of an order or invoice.

    Contract:
        Input fields only; every amount derived from them lives on
        ``LineItemResult``. ``free_quantity`` is informational and never
        priced.
    """

    unit_price: Money
    quantity: Decimal = Decimal("1")
    discount_percent: Percent = Decimal("0")
    tax_rates: TaxRates = field(default_factory=TaxRates)
    free_quantity: Decimal = Decimal("0")
    line_id: str | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.unit_price, Money):
            object.__setattr__(self, "unit_price", Money.of(self.unit_price))
        object.__setattr__(self, "quantity", to_decimal(self.quantity, "quantity"))
        object.__setattr__(self, "free_quantity", to_decimal(self.free_quantity, "free_quantity"))
        object.__setattr__(
            self, "discount_percent", Percent.of(self.discount_percent, "discount_percent")
        )

        if self.unit_price.is_negative:
            raise NegativeAmountError("unit_price", self.unit_price.amount)
        if self.quantity < 0:
            raise NegativeAmountError("quantity", self.quantity)
        if self.free_quantity < 0:
            raise NegativeAmountError("free_quantity", self.free_quantity)

    @property
    def total_units(self) -> Decimal:
        """Billed plus free units (what leaves or enters stock)."""
        return self.quantity + self.free_quantity


@dataclass(frozen=True)
class LineItemResult:
    """
    Derived amounts for one line, at full precision.

    Guarantees:
        - ``tax_amount == cgst + sgst + igst + cess``.
        - ``total_amount == taxable_amount + tax_amount``.
    """

    line: LineItem
    base_amount: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    @property
    def currency(self) -> str:
        return self.line.unit_price.currency.code

    def component_amount(self, component: str) -> Decimal:
        if component not in TAX_COMPONENTS:
            raise ValueError(f"Unknown tax component: {component}")
        return getattr(self, f"{component}_amount")

    def rounded(self) -> LineItemResult:
        """Display/persistence view: each amount passed through round2 once."""
        return replace(
            self,
            base_amount=round2(self.base_amount),
            discount_amount=round2(self.discount_amount),
            taxable_amount=round2(self.taxable_amount),
            cgst_amount=round2(self.cgst_amount),
            sgst_amount=round2(self.sgst_amount),
            igst_amount=round2(self.igst_amount),
            cess_amount=round2(self.cess_amount),
            tax_amount=round2(self.tax_amount),
            total_amount=round2(self.total_amount),
        )


class LineItemCalculator:
    """
    Compute line totals.

    Contract:
        Pure function of a single LineItem. No I/O, no shared state, so
        recomputing a line on every field edit is always safe.
    """

    @traced_engine("line_item", "1.0", fingerprint_fields=("line",))
    def calculate(self, line: LineItem) -> LineItemResult:
        """Run the base -> discount -> tax -> total cascade for one line."""
        base_amount = line.unit_price.amount * line.quantity
        discount_amount = line.discount_percent.of_amount(base_amount)
        taxable_amount = base_amount - discount_amount

        rates = line.tax_rates
        cgst_amount = rates.cgst.of_amount(taxable_amount)
        sgst_amount = rates.sgst.of_amount(taxable_amount)
        igst_amount = rates.igst.of_amount(taxable_amount)
        cess_amount = rates.cess.of_amount(taxable_amount)

        tax_amount = cgst_amount + sgst_amount + igst_amount + cess_amount
        total_amount = taxable_amount + tax_amount

        logger.debug("line_item_calculated", extra={
            "line_id": line.line_id,
            "base_amount": str(base_amount),
            "taxable_amount": str(taxable_amount),
            "tax_amount": str(tax_amount),
            "total_amount": str(total_amount),
            "regime": rates.regime.value,
        })

        return LineItemResult(
            line=line,
            base_amount=base_amount,
            discount_amount=discount_amount,
            taxable_amount=taxable_amount,
            cgst_amount=cgst_amount,
            sgst_amount=sgst_amount,
            igst_amount=igst_amount,
            cess_amount=cess_amount,
            tax_amount=tax_amount,
            total_amount=total_amount,
        )

    def calculate_many(self, lines: Sequence[LineItem]) -> tuple[LineItemResult, ...]:
        """Calculate each line independently, preserving order."""
        return tuple(self.calculate(line=line) for line in lines)


def calculate_line(
    unit_price: NumberLike | Money,
    quantity: NumberLike = Decimal("1"),
    discount_percent: NumberLike = Decimal("0"),
    cgst_rate: NumberLike = Decimal("0"),
    sgst_rate: NumberLike = Decimal("0"),
    igst_rate: NumberLike = Decimal("0"),
    cess_rate: NumberLike = Decimal("0"),
    free_quantity: NumberLike = Decimal("0"),
) -> LineItemResult:
    """Functional form of ``LineItemCalculator.calculate`` over raw inputs."""
    line = LineItem(
        unit_price=unit_price if isinstance(unit_price, Money) else Money.of(unit_price),
        quantity=to_decimal(quantity, "quantity"),
        discount_percent=discount_percent,
        tax_rates=TaxRates(cgst=cgst_rate, sgst=sgst_rate, igst=igst_rate, cess=cess_rate),
        free_quantity=to_decimal(free_quantity, "free_quantity"),
    )
    return LineItemCalculator().calculate(line=line)


def discount_percent_from_amount(
    discount_amount: NumberLike,
    base_amount: NumberLike,
) -> Percent:
    """
    Convert a flat discount the user typed into the equivalent percent.

    A zero (or negative) base has no meaningful percentage, so it gives 0%.
    A discount larger than the base is out of range.
    """
    discount = to_decimal(discount_amount, "discount_amount")
    base = to_decimal(base_amount, "base_amount")
    if discount < 0:
        raise NegativeAmountError("discount_amount", discount)
    if base <= 0:
        return Percent.zero("discount_percent")
    return Percent.of(discount / base * Decimal("100"), "discount_percent")
