"""Collaborator protocols for reference data and persistence.

The billing core never talks HTTP itself. Host applications provide
objects satisfying these protocols (a REST client, an in-memory fake in
tests) and inject them into the services.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ProductRecord:
    """Product master fields the invoice forms read."""

    product_id: int
    name: str
    cost_price: Decimal = Decimal("0")
    mrp_price: Decimal = Decimal("0")
    selling_price: Decimal = Decimal("0")
    gst_rate: Decimal = Decimal("0")
    cess_rate: Decimal = Decimal("0")
    hsn_code: str = ""


@dataclass(frozen=True)
class TestRecord:
    """Diagnostic test master fields."""

    __test__ = False  # not a pytest test class

    test_id: int
    name: str
    rate: Decimal = Decimal("0")
    gst_rate: Decimal = Decimal("0")
    cess_rate: Decimal = Decimal("0")


@dataclass(frozen=True)
class PanelRecord:
    """Diagnostic panel (bundle of tests) master fields."""

    panel_id: int
    name: str
    cost: Decimal = Decimal("0")
    gst_rate: Decimal = Decimal("0")
    cess_rate: Decimal = Decimal("0")


@runtime_checkable
class ReferenceData(Protocol):
    """Read-only lookups of master data.

    Each getter returns None when the id is unknown.
    """

    def get_product(self, product_id: int) -> ProductRecord | None: ...

    def get_test(self, test_id: int) -> TestRecord | None: ...

    def get_panel(self, panel_id: int) -> PanelRecord | None: ...


@runtime_checkable
class PersistenceGateway(Protocol):
    """Backend write operations.

    Implementations return the backend's response body. A body with
    ``"success": False`` is a business rejection. Network failures surface
    as ``ConnectionError``/``TimeoutError``/``OSError``; stale-state
    rejections may be raised directly as ``ConflictError``.
    """

    def create_invoice(self, payload: Mapping[str, Any]) -> Mapping[str, Any]: ...

    def update_invoice(
        self, document_id: str, payload: Mapping[str, Any]
    ) -> Mapping[str, Any]: ...

    def allocate_payment(
        self, payment_id: str, payload: Mapping[str, Any]
    ) -> Mapping[str, Any]: ...
