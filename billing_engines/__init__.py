"""
Module: billing_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculators. This is the import surface for billing_services and for
    host applications.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel (and sibling engine modules).
    MUST NOT import billing_config or billing_services.

Invariants enforced:
    - Purity: engines never read the clock, the network or global state.
    - Decimal-only arithmetic; floats are rejected at construction.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Calculators are wrapped in ``@traced_engine`` (see
    ``billing_engines.tracer``) and emit BILLING_ENGINE_TRACE records with
    engine name, version, input fingerprint and duration.

Usage:
    from billing_engines.line_item import LineItemCalculator
    from billing_engines.document_totals import DocumentTotalsAggregator
    from billing_engines.verdict import classify
    from billing_engines.allocation import PaymentAllocationReconciler
    from billing_engines.payment_split import sync_default_payment
"""

from billing_kernel.logging_config import get_logger

logger = get_logger("engines")

from billing_engines.allocation import (
    AllocationProposal,
    AllocationRequest,
    AllocationState,
    CandidateInvoice,
    DocumentStatus,
    InvoicePaymentStatus,
    Payment,
    PaymentAllocation,
    PaymentAllocationReconciler,
    clamp_allocation_amount,
    remaining_unallocated,
    select_allocatable_payments,
    select_eligible_invoices,
)
from billing_engines.document_totals import (
    DEFAULT_ROUNDOFF_WARNING_LIMIT,
    DocumentTotals,
    DocumentTotalsAggregator,
)
from billing_engines.line_item import (
    TAX_COMPONENTS,
    LineItem,
    LineItemCalculator,
    LineItemResult,
    TaxRates,
    TaxRegime,
    calculate_line,
    discount_percent_from_amount,
)
from billing_engines.payment_split import (
    Account,
    PaymentLine,
    PaymentMode,
    find_bank_accounts,
    find_cash_account,
    sync_default_payment,
)
from billing_engines.tracer import compute_input_fingerprint, traced_engine
from billing_engines.verdict import (
    ParameterReading,
    ParameterVerdict,
    RangeKind,
    ReferenceRange,
    Verdict,
    classify,
    classify_parameters,
    parse_number,
)

__all__ = [
    # Allocation
    "AllocationProposal",
    "AllocationRequest",
    "AllocationState",
    "CandidateInvoice",
    "DocumentStatus",
    "InvoicePaymentStatus",
    "Payment",
    "PaymentAllocation",
    "PaymentAllocationReconciler",
    "clamp_allocation_amount",
    "remaining_unallocated",
    "select_allocatable_payments",
    "select_eligible_invoices",
    # Document totals
    "DEFAULT_ROUNDOFF_WARNING_LIMIT",
    "DocumentTotals",
    "DocumentTotalsAggregator",
    # Line items
    "TAX_COMPONENTS",
    "LineItem",
    "LineItemCalculator",
    "LineItemResult",
    "TaxRates",
    "TaxRegime",
    "calculate_line",
    "discount_percent_from_amount",
    # Payment split
    "Account",
    "PaymentLine",
    "PaymentMode",
    "find_bank_accounts",
    "find_cash_account",
    "sync_default_payment",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
    # Verdicts
    "ParameterReading",
    "ParameterVerdict",
    "RangeKind",
    "ReferenceRange",
    "Verdict",
    "classify",
    "classify_parameters",
    "parse_number",
]
