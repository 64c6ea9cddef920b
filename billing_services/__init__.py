"""
billing_services -- Collaborator boundary of the billing core.

Seeds lines from reference data, builds backend payloads and submits them
through an injected PersistenceGateway. Everything numeric is delegated
to billing_engines; everything configurable comes from billing_config.
"""

from billing_services.gateways import (
    PanelRecord,
    PersistenceGateway,
    ProductRecord,
    ReferenceData,
    TestRecord,
)
from billing_services.reference_data import (
    LineSeeder,
    fallback_cost_price,
    purchase_unit_price,
    seed_panel_line,
    seed_purchase_line,
    seed_sales_line,
    seed_test_line,
)
from billing_services.submission import (
    DocumentSubmitter,
    FormSession,
    SubmissionGuard,
    build_allocation_payload,
    build_invoice_payload,
    round_amount_fields,
)

__all__ = [
    "DocumentSubmitter",
    "FormSession",
    "LineSeeder",
    "PanelRecord",
    "PersistenceGateway",
    "ProductRecord",
    "ReferenceData",
    "SubmissionGuard",
    "TestRecord",
    "build_allocation_payload",
    "build_invoice_payload",
    "fallback_cost_price",
    "purchase_unit_price",
    "round_amount_fields",
    "seed_panel_line",
    "seed_purchase_line",
    "seed_sales_line",
    "seed_test_line",
]
