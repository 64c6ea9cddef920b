"""
Pytest fixtures for the billing core test suite.

Provides:
- Structured logging configured once per session, with a JSON capture helper
- Deterministic clock and request context
- Builders for line items, payments and candidate invoices
- In-memory reference data and persistence fakes
"""

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO

import pytest

from billing_config import BillingConfig
from billing_engines.allocation import CandidateInvoice, InvoicePaymentStatus, Payment
from billing_engines.line_item import LineItem, TaxRates
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.context import RequestContext
from billing_kernel.domain.values import Money
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_services.gateways import PanelRecord, ProductRecord, TestRecord


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            reconciler.propose_allocations(...)
            logs = captured_logs()
            assert any(r["message"] == "allocation_proposed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock / context fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2024-03-15 10:30:45.123 UTC."""
    return DeterministicClock(datetime(2024, 3, 15, 10, 30, 45, 123000, tzinfo=UTC))


@pytest.fixture
def request_context():
    return RequestContext(tenant_id="1", user_id="42")


@pytest.fixture
def billing_config():
    return BillingConfig(config_id="test", version=1)


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_line():
    """Build a LineItem from plain strings."""

    def _make(price="100", qty="1", discount="0", cgst="0", sgst="0", igst="0", cess="0"):
        return LineItem(
            unit_price=Money.of(price),
            quantity=Decimal(qty),
            discount_percent=Decimal(discount),
            tax_rates=TaxRates(
                cgst=Decimal(cgst), sgst=Decimal(sgst),
                igst=Decimal(igst), cess=Decimal(cess),
            ),
        )

    return _make


@pytest.fixture
def make_payment():
    def _make(total="1000", allocated="0", status="POSTED", payment_id="pay-1", party_id="p-1"):
        return Payment(
            payment_id=payment_id,
            total_amount=Money.of(total),
            allocated_amount=Money.of(allocated),
            status=status,
            party_id=party_id,
        )

    return _make


@pytest.fixture
def make_invoice():
    def _make(invoice_id, balance, party_id="p-1", status="POSTED", payment_status=None):
        if payment_status is None:
            payment_status = (
                InvoicePaymentStatus.UNPAID if Decimal(balance) > 0 else InvoicePaymentStatus.PAID
            )
        return CandidateInvoice(
            invoice_id=invoice_id,
            balance_amount=Money.of(balance),
            invoice_number=f"INV-{invoice_id}",
            party_id=party_id,
            status=status,
            payment_status=payment_status,
        )

    return _make


# =============================================================================
# Collaborator fakes
# =============================================================================


class InMemoryReferenceData:
    """ReferenceData backed by dicts."""

    def __init__(self, products=(), tests=(), panels=()):
        self.products = {p.product_id: p for p in products}
        self.tests = {t.test_id: t for t in tests}
        self.panels = {p.panel_id: p for p in panels}

    def get_product(self, product_id):
        return self.products.get(product_id)

    def get_test(self, test_id):
        return self.tests.get(test_id)

    def get_panel(self, panel_id):
        return self.panels.get(panel_id)


class RecordingGateway:
    """PersistenceGateway that records calls and replays a scripted outcome."""

    def __init__(self, response=None, error=None):
        self.response = {"success": True} if response is None else response
        self.error = error
        self.calls: list[tuple] = []

    def _respond(self, call):
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        return self.response

    def create_invoice(self, payload):
        return self._respond(("create_invoice", payload))

    def update_invoice(self, document_id, payload):
        return self._respond(("update_invoice", document_id, payload))

    def allocate_payment(self, payment_id, payload):
        return self._respond(("allocate_payment", payment_id, payload))


@pytest.fixture
def reference_data():
    return InMemoryReferenceData(
        products=[
            ProductRecord(
                product_id=1, name="Paracetamol 500",
                cost_price=Decimal("12.50"), mrp_price=Decimal("20.00"),
                selling_price=Decimal("18.00"), gst_rate=Decimal("12"),
            ),
            ProductRecord(
                product_id=2, name="Cough Syrup",
                cost_price=Decimal("0"), mrp_price=Decimal("99.99"),
                selling_price=Decimal("95.00"), gst_rate=Decimal("18"),
            ),
        ],
        tests=[
            TestRecord(test_id=10, name="CBC", rate=Decimal("350"), gst_rate=Decimal("18")),
        ],
        panels=[
            PanelRecord(
                panel_id=20, name="Lipid Profile", cost=Decimal("900"),
                gst_rate=Decimal("12"), cess_rate=Decimal("1"),
            ),
        ],
    )


@pytest.fixture
def recording_gateway():
    return RecordingGateway()
