"""Tests for seeding line items from product, test and panel master data."""

from decimal import Decimal

import pytest

from billing_config import BillingConfig
from billing_engines.line_item import LineItemCalculator, TaxRegime
from billing_kernel.exceptions import MissingSelectionError
from billing_services.gateways import PersistenceGateway, ProductRecord, ReferenceData
from billing_services.reference_data import (
    LineSeeder,
    fallback_cost_price,
    purchase_unit_price,
    seed_purchase_line,
    seed_sales_line,
)


class TestCostFallback:

    def test_floor_not_round(self):
        # 99.99 * 0.7 = 69.993
        assert fallback_cost_price(Decimal("99.99")) == Decimal("69.99")

    def test_floor_at_half_cent(self):
        # 10.01 * 0.7 = 7.007
        assert fallback_cost_price(Decimal("10.01")) == Decimal("7.00")

    def test_custom_ratio(self):
        assert fallback_cost_price(Decimal("200"), Decimal("0.55")) == Decimal("110.00")

    def test_cost_price_wins(self):
        product = ProductRecord(1, "x", cost_price=Decimal("5"), mrp_price=Decimal("100"))
        assert purchase_unit_price(product) == Decimal("5")

    def test_falls_back_to_selling_price_without_mrp(self):
        product = ProductRecord(1, "x", selling_price=Decimal("50"))
        assert purchase_unit_price(product) == Decimal("35.00")

    def test_no_prices_gives_zero(self):
        assert purchase_unit_price(ProductRecord(1, "x")) == Decimal("0")


class TestSeedFunctions:

    def test_purchase_line_intra_state(self):
        product = ProductRecord(1, "Tab", cost_price=Decimal("12.50"), gst_rate=Decimal("12"))
        line = seed_purchase_line(product, quantity=Decimal("4"))

        assert line.unit_price.amount == Decimal("12.50")
        assert line.tax_rates.cgst.value == Decimal("6")
        assert line.tax_rates.sgst.value == Decimal("6")
        assert line.description == "Tab"

    def test_sales_line_inter_state(self):
        product = ProductRecord(
            1, "Tab", selling_price=Decimal("18"), gst_rate=Decimal("12"), cess_rate=Decimal("1")
        )
        line = seed_sales_line(product, TaxRegime.INTER_STATE)

        assert line.unit_price.amount == Decimal("18")
        assert line.tax_rates.igst.value == Decimal("12")
        assert line.tax_rates.cess.value == Decimal("1")


class TestLineSeeder:

    def setup_method(self):
        self.config = BillingConfig(config_id="t", version=1)

    def test_fake_satisfies_protocols(self, reference_data, recording_gateway):
        assert isinstance(reference_data, ReferenceData)
        assert isinstance(recording_gateway, PersistenceGateway)

    def test_purchase_line_uses_fallback(self, reference_data):
        line = LineSeeder(reference_data, self.config).purchase_line(2)
        assert line.unit_price.amount == Decimal("69.99")
        assert line.tax_rates.cgst.value == Decimal("9")

    def test_configured_ratio(self, reference_data):
        config = BillingConfig(config_id="t", version=1, cost_fallback_ratio=Decimal("0.5"))
        line = LineSeeder(reference_data, config).purchase_line(2)
        assert line.unit_price.amount == Decimal("49.99")

    def test_configured_regime(self, reference_data):
        config = BillingConfig(config_id="t", version=1, default_tax_regime="inter_state")
        line = LineSeeder(reference_data, config).sales_line(1)
        assert line.tax_rates.igst.value == Decimal("12")

    def test_explicit_regime_overrides_config(self, reference_data):
        seeder = LineSeeder(reference_data, self.config)
        line = seeder.sales_line(1, regime=TaxRegime.INTER_STATE)
        assert line.tax_rates.regime == TaxRegime.INTER_STATE

    def test_test_line(self, reference_data):
        line = LineSeeder(reference_data, self.config).test_line(10)
        result = LineItemCalculator().calculate(line=line)

        assert line.quantity == Decimal("1")
        assert result.total_amount == Decimal("413")

    def test_panel_line_with_cess(self, reference_data):
        line = LineSeeder(reference_data, self.config).panel_line(20)
        result = LineItemCalculator().calculate(line=line)

        assert result.cgst_amount == Decimal("54")
        assert result.cess_amount == Decimal("9")
        assert result.total_amount == Decimal("1017")

    @pytest.mark.parametrize("method,item_id", [
        ("purchase_line", 99), ("sales_line", 99), ("test_line", 99), ("panel_line", 99),
    ])
    def test_unknown_ids(self, reference_data, method, item_id):
        seeder = LineSeeder(reference_data, self.config)
        with pytest.raises(MissingSelectionError):
            getattr(seeder, method)(item_id)
