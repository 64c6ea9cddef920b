"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection a calculator produces must reach the form layer with a
specific reason, never a bare boolean. Callers catch by type, render
``reason`` to the user, and use ``code`` for anything machine-readable:

    try:
        proposal = reconciler.propose_allocations(payment, invoices, requests)
    except OverAllocationError as e:
        show_error(e.reason)                          # user-facing
        log.warning("rejected", extra={"code": e.code,
                                       "excess": str(e.excess)})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- ValidationError              local, recoverable, never hits the network
    |   +-- NegativeAmountError
    |   +-- RateOutOfRangeError
    |   +-- TaxRegimeConflictError
    |   +-- MissingSelectionError
    |   +-- InvalidCurrencyError
    |   +-- AllocationError
    |       +-- PaymentNotPostedError
    |       +-- NoAllocationsError
    |       +-- OverAllocationError
    |       +-- InvalidInvoiceError
    |       +-- InvoiceOverAllocationError
    |
    +-- RemoteError                  raised by the persistence boundary
    |   +-- ConflictError            recover by reloading, never by retrying
    |   +-- TransportError           user may resubmit manually
    |
    +-- SubmissionInFlightError      a persistence call is already running
    +-- FormDiscardedError           submit attempted after cancel

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                     | When Raised
-------------|--------------------------|--------------------------------------
Validation   | NEGATIVE_AMOUNT          | Negative price, quantity or amount
             | RATE_OUT_OF_RANGE        | Percent outside [0, 100]
             | TAX_REGIME_CONFLICT      | IGST combined with CGST/SGST
             | MISSING_SELECTION        | No party/account/payment chosen
             | INVALID_CURRENCY         | Not a known ISO 4217 code
-------------|--------------------------|--------------------------------------
Allocation   | PAYMENT_NOT_POSTED       | Payment is draft or cancelled
             | NO_ALLOCATIONS           | Empty or all-zero batch
             | OVER_ALLOCATION          | Batch sum > payment unallocated
             | INVALID_INVOICE          | Invoice not offered or fully paid
             | INVOICE_OVER_ALLOCATION  | Line amount > invoice balance
-------------|--------------------------|--------------------------------------
Remote       | CONFLICT                 | Backend rejected stale state
             | TRANSPORT_ERROR          | Network/server failure
-------------|--------------------------|--------------------------------------
Submission   | SUBMISSION_IN_FLIGHT     | Double submit of the same document
             | FORM_DISCARDED           | Payload built after the form was cancelled
"""

from __future__ import annotations

from decimal import Decimal


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses define a ``code`` class attribute and set ``reason``,
    the message shown to the user.
    """

    code: str = "BILLING_KERNEL_ERROR"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


# Validation


class ValidationError(BillingKernelError):
    """Local input error. Surfaced at the field or form level."""

    code: str = "VALIDATION_ERROR"


class NegativeAmountError(ValidationError):
    """A price, quantity or amount that must be non-negative is negative."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, field: str, value: Decimal):
        self.field = field
        self.value = value
        super().__init__(f"{field} cannot be negative: {value}")


class RateOutOfRangeError(ValidationError):
    """A percentage (discount or tax rate) is outside [0, 100]."""

    code: str = "RATE_OUT_OF_RANGE"

    def __init__(self, field: str, value: Decimal):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be between 0 and 100, got {value}")


class TaxRegimeConflictError(ValidationError):
    """IGST (inter-state) was combined with CGST/SGST (intra-state)."""

    code: str = "TAX_REGIME_CONFLICT"

    def __init__(self, cgst: Decimal, sgst: Decimal, igst: Decimal):
        self.cgst = cgst
        self.sgst = sgst
        self.igst = igst
        super().__init__(
            f"IGST cannot be combined with CGST/SGST "
            f"(cgst={cgst}, sgst={sgst}, igst={igst})"
        )


class MissingSelectionError(ValidationError):
    """A required selection (party, account, payment, item) is missing."""

    code: str = "MISSING_SELECTION"

    def __init__(self, field: str, reason: str | None = None):
        self.field = field
        super().__init__(reason or f"Please select a {field}")


class InvalidCurrencyError(ValidationError):
    """Currency code is not a known ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency}")


# Allocation


class AllocationError(ValidationError):
    """Base exception for rejected allocation batches."""

    code: str = "ALLOCATION_ERROR"


class PaymentNotPostedError(AllocationError):
    """Only posted payments may be allocated."""

    code: str = "PAYMENT_NOT_POSTED"

    def __init__(self, payment_id: str, status: str):
        self.payment_id = payment_id
        self.status = status
        super().__init__(
            f"Payment {payment_id} is {status}; only posted payments can be allocated"
        )


class NoAllocationsError(AllocationError):
    """The batch is empty or every line is zero."""

    code: str = "NO_ALLOCATIONS"

    def __init__(self) -> None:
        super().__init__("Please allocate amount to at least one invoice")


class OverAllocationError(AllocationError):
    """Batch total exceeds the payment's unallocated amount."""

    code: str = "OVER_ALLOCATION"

    def __init__(self, payment_id: str, requested: Decimal, unallocated: Decimal):
        self.payment_id = payment_id
        self.requested = requested
        self.unallocated = unallocated
        self.excess = requested - unallocated
        super().__init__(
            f"Total allocated amount {requested} cannot exceed "
            f"unallocated amount {unallocated}"
        )


class InvalidInvoiceError(AllocationError):
    """Invoice is not in the candidate set or is already fully paid."""

    code: str = "INVALID_INVOICE"

    def __init__(self, invoice_id: str, detail: str):
        self.invoice_id = invoice_id
        self.detail = detail
        super().__init__(f"Invoice {invoice_id} cannot be allocated: {detail}")


class InvoiceOverAllocationError(AllocationError):
    """Amount allocated to one invoice exceeds its balance due."""

    code: str = "INVOICE_OVER_ALLOCATION"

    def __init__(self, invoice_id: str, requested: Decimal, balance: Decimal):
        self.invoice_id = invoice_id
        self.requested = requested
        self.balance = balance
        super().__init__(
            f"Allocation {requested} exceeds balance {balance} "
            f"for invoice {invoice_id}"
        )


# Remote


class RemoteError(BillingKernelError):
    """Base exception for failures reported by the persistence boundary."""

    code: str = "REMOTE_ERROR"


class ConflictError(RemoteError):
    """
    Backend rejected the submission because its state moved on.

    Recovery is a full reload of payment/invoice state, never a retry
    of the same payload.
    """

    code: str = "CONFLICT"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(reason)


class TransportError(RemoteError):
    """Network or server failure. Not retried automatically."""

    code: str = "TRANSPORT_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(reason)


# Submission


class SubmissionInFlightError(BillingKernelError):
    """A persistence call for this document is already in flight."""

    code: str = "SUBMISSION_IN_FLIGHT"

    def __init__(self, document_key: str):
        self.document_key = document_key
        super().__init__(
            f"A submission for {document_key} is already in progress"
        )


class FormDiscardedError(BillingKernelError):
    """The form was cancelled; its state can no longer be submitted."""

    code: str = "FORM_DISCARDED"

    def __init__(self, document_number: str):
        self.document_number = document_number
        super().__init__(f"Form {document_number} was discarded and cannot be submitted")
