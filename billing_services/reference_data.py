"""
billing_services.reference_data -- Seed line items from master data.

Responsibility:
    Turn a selected product, test or panel into a ``LineItem`` with the
    price and GST split the forms pre-fill: purchase lines at cost (with an
    MRP-based fallback), sales lines at selling price, test and panel lines
    at their rate.

Architecture position:
    Services -- composes the ReferenceData collaborator with the
    line-item value types and BillingConfig.

Invariants enforced:
    - Cost fallback is ``floor(mrp * ratio, 2 places)``; it never rounds up.
    - GST is split by regime through ``TaxRates.from_gst``, so the
      intra/inter-state choice is configuration, not a code path.

Failure modes:
    - MissingSelectionError when the id is unknown to reference data.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal

from billing_config import BillingConfig
from billing_engines.line_item import LineItem, TaxRates, TaxRegime
from billing_kernel.domain.values import Money, NumberLike, to_decimal
from billing_kernel.exceptions import MissingSelectionError
from billing_kernel.logging_config import get_logger
from billing_services.gateways import PanelRecord, ProductRecord, ReferenceData, TestRecord

logger = get_logger("services.reference_data")

DEFAULT_COST_FALLBACK_RATIO = Decimal("0.7")
_CENTS = Decimal("0.01")


def fallback_cost_price(
    mrp: NumberLike,
    ratio: NumberLike = DEFAULT_COST_FALLBACK_RATIO,
) -> Decimal:
    """``floor(mrp * ratio * 100) / 100``."""
    value = to_decimal(mrp, "mrp") * to_decimal(ratio, "cost_fallback_ratio")
    return value.quantize(_CENTS, rounding=ROUND_FLOOR)


def purchase_unit_price(
    product: ProductRecord,
    ratio: NumberLike = DEFAULT_COST_FALLBACK_RATIO,
) -> Decimal:
    """Cost price, or the MRP fallback when the product has no cost."""
    cost = to_decimal(product.cost_price, "cost_price")
    if cost > 0:
        return cost
    mrp = to_decimal(product.mrp_price, "mrp_price")
    if mrp <= 0:
        mrp = to_decimal(product.selling_price, "selling_price")
    if mrp > 0:
        return fallback_cost_price(mrp, ratio)
    return cost


def seed_purchase_line(
    product: ProductRecord,
    regime: TaxRegime = TaxRegime.INTRA_STATE,
    quantity: NumberLike = Decimal("1"),
    cost_fallback_ratio: NumberLike = DEFAULT_COST_FALLBACK_RATIO,
) -> LineItem:
    price = purchase_unit_price(product, cost_fallback_ratio)
    if price != product.cost_price:
        logger.debug("cost_price_fallback_applied", extra={
            "product_id": product.product_id,
            "unit_price": str(price),
        })
    return LineItem(
        unit_price=Money.of(price),
        quantity=to_decimal(quantity, "quantity"),
        tax_rates=TaxRates.from_gst(product.gst_rate, regime, product.cess_rate),
        line_id=str(product.product_id),
        description=product.name,
    )


def seed_sales_line(
    product: ProductRecord,
    regime: TaxRegime = TaxRegime.INTRA_STATE,
    quantity: NumberLike = Decimal("1"),
) -> LineItem:
    return LineItem(
        unit_price=Money.of(product.selling_price),
        quantity=to_decimal(quantity, "quantity"),
        tax_rates=TaxRates.from_gst(product.gst_rate, regime, product.cess_rate),
        line_id=str(product.product_id),
        description=product.name,
    )


def seed_test_line(test: TestRecord, regime: TaxRegime = TaxRegime.INTRA_STATE) -> LineItem:
    return LineItem(
        unit_price=Money.of(test.rate),
        tax_rates=TaxRates.from_gst(test.gst_rate, regime, test.cess_rate),
        line_id=f"test:{test.test_id}",
        description=test.name,
    )


def seed_panel_line(panel: PanelRecord, regime: TaxRegime = TaxRegime.INTRA_STATE) -> LineItem:
    return LineItem(
        unit_price=Money.of(panel.cost),
        tax_rates=TaxRates.from_gst(panel.gst_rate, regime, panel.cess_rate),
        line_id=f"panel:{panel.panel_id}",
        description=panel.name,
    )


class LineSeeder:
    """
    Look up master data by id and seed the matching line.

    Uses the configured default tax regime unless one is passed per call.
    """

    def __init__(self, reference_data: ReferenceData, config: BillingConfig):
        self._reference_data = reference_data
        self._config = config

    def _regime(self, regime: TaxRegime | None) -> TaxRegime:
        return regime if regime is not None else TaxRegime(self._config.default_tax_regime)

    def _product(self, product_id: int) -> ProductRecord:
        product = self._reference_data.get_product(product_id)
        if product is None:
            raise MissingSelectionError("product", f"Unknown product: {product_id}")
        return product

    def purchase_line(
        self,
        product_id: int,
        quantity: NumberLike = Decimal("1"),
        regime: TaxRegime | None = None,
    ) -> LineItem:
        return seed_purchase_line(
            self._product(product_id),
            self._regime(regime),
            quantity,
            self._config.cost_fallback_ratio,
        )

    def sales_line(
        self,
        product_id: int,
        quantity: NumberLike = Decimal("1"),
        regime: TaxRegime | None = None,
    ) -> LineItem:
        return seed_sales_line(self._product(product_id), self._regime(regime), quantity)

    def test_line(self, test_id: int, regime: TaxRegime | None = None) -> LineItem:
        test = self._reference_data.get_test(test_id)
        if test is None:
            raise MissingSelectionError("test", f"Unknown test: {test_id}")
        return seed_test_line(test, self._regime(regime))

    def panel_line(self, panel_id: int, regime: TaxRegime | None = None) -> LineItem:
        panel = self._reference_data.get_panel(panel_id)
        if panel is None:
            raise MissingSelectionError("panel", f"Unknown panel: {panel_id}")
        return seed_panel_line(panel, self._regime(regime))
