"""
Module: billing_engines.allocation
Responsibility:
    Reconcile a payment's unallocated balance against outstanding invoices:
    validate a requested allocation batch and, if it is acceptable, propose
    one PaymentAllocation per line plus the resulting payment and invoice
    balances.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Applying the proposal (decrementing balances) is the persistence
    collaborator's job; inputs here are never mutated.

Invariants enforced:
    - Only POSTED payments are allocated.
    - Every line is > 0 and, summed per invoice, <= that invoice's balance.
    - Batch total <= payment.unallocated_amount.
    - Atomic validation: the first violation rejects the whole batch.
    - Conservation: unallocated_before - batch_total == unallocated_after.
    - unallocated_amount == total_amount - allocated_amount, both >= 0.

Failure modes:
    - PaymentNotPostedError, NoAllocationsError, OverAllocationError,
      InvalidInvoiceError, InvoiceOverAllocationError (all AllocationError).
    - NegativeAmountError for a negative requested amount.
    - ValidationError for amounts finer than the currency's precision.

Usage:
    from billing_engines.allocation import (
        AllocationRequest, CandidateInvoice, Payment, PaymentAllocationReconciler,
    )

    proposal = PaymentAllocationReconciler().propose_allocations(
        payment=payment,
        candidate_invoices=invoices,
        requested_allocations=[AllocationRequest("inv-1", Decimal("300"))],
    )
    proposal.payment_after.unallocated_amount
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum

from billing_engines.tracer import traced_engine
from billing_kernel.domain.values import Money, NumberLike, to_decimal
from billing_kernel.exceptions import (
    InvalidInvoiceError,
    InvoiceOverAllocationError,
    NegativeAmountError,
    NoAllocationsError,
    OverAllocationError,
    PaymentNotPostedError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


class DocumentStatus(str, Enum):
    """Posting status shared by payments and invoices."""

    DRAFT = "DRAFT"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"


class InvoicePaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class AllocationState(str, Enum):
    """Where a payment is in its (one-way) allocation lifecycle."""

    UNALLOCATED = "unallocated"
    PARTIALLY_ALLOCATED = "partially_allocated"
    FULLY_ALLOCATED = "fully_allocated"


def _as_money(value: Money | NumberLike, field_name: str) -> Money:
    if isinstance(value, Money):
        return value
    return Money.of(to_decimal(value, field_name))


@dataclass(frozen=True)
class Payment:
    """
    A received payment and how much of it is already allocated.

    Guarantees:
        - 0 <= allocated_amount <= total_amount.
        - unallocated_amount is derived, never stored.
    """

    payment_id: str
    total_amount: Money
    allocated_amount: Money | None = None
    status: DocumentStatus = DocumentStatus.POSTED
    party_id: str | None = None
    payment_number: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "payment_id", str(self.payment_id))
        if self.party_id is not None:
            object.__setattr__(self, "party_id", str(self.party_id))
        total = _as_money(self.total_amount, "total_amount")
        allocated = (
            Money.zero(total.currency)
            if self.allocated_amount is None
            else _as_money(self.allocated_amount, "allocated_amount")
        )
        object.__setattr__(self, "total_amount", total)
        object.__setattr__(self, "allocated_amount", allocated)
        object.__setattr__(self, "status", DocumentStatus(self.status))

        if total.is_negative:
            raise NegativeAmountError("total_amount", total.amount)
        if allocated.is_negative:
            raise NegativeAmountError("allocated_amount", allocated.amount)
        if allocated > total:
            raise ValidationError(
                f"Payment {self.payment_id}: allocated amount {allocated.amount} "
                f"exceeds total {total.amount}"
            )

    @property
    def unallocated_amount(self) -> Money:
        return self.total_amount - self.allocated_amount

    @property
    def allocation_state(self) -> AllocationState:
        if self.unallocated_amount.is_zero:
            return AllocationState.FULLY_ALLOCATED
        if self.allocated_amount.is_zero:
            return AllocationState.UNALLOCATED
        return AllocationState.PARTIALLY_ALLOCATED


@dataclass(frozen=True)
class CandidateInvoice:
    """
    An outstanding invoice offered for allocation. Read-only input.
    """

    invoice_id: str
    balance_amount: Money
    invoice_number: str = ""
    party_id: str | None = None
    status: DocumentStatus = DocumentStatus.POSTED
    payment_status: InvoicePaymentStatus = InvoicePaymentStatus.UNPAID
    total_amount: Money | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "invoice_id", str(self.invoice_id))
        if self.party_id is not None:
            object.__setattr__(self, "party_id", str(self.party_id))
        object.__setattr__(
            self, "balance_amount", _as_money(self.balance_amount, "balance_amount")
        )
        if self.total_amount is not None:
            object.__setattr__(
                self, "total_amount", _as_money(self.total_amount, "total_amount")
            )
        object.__setattr__(self, "status", DocumentStatus(self.status))
        object.__setattr__(self, "payment_status", InvoicePaymentStatus(self.payment_status))

    @property
    def is_fully_paid(self) -> bool:
        return (
            self.payment_status == InvoicePaymentStatus.PAID
            or not self.balance_amount.is_positive
        )


@dataclass(frozen=True)
class AllocationRequest:
    """One line the user entered: allocate ``amount`` to ``invoice_id``."""

    invoice_id: str
    amount: Decimal
    remarks: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "invoice_id", str(self.invoice_id))
        amount = self.amount.amount if isinstance(self.amount, Money) else self.amount
        object.__setattr__(self, "amount", to_decimal(amount, "allocated_amount"))


@dataclass(frozen=True)
class PaymentAllocation:
    """
    Immutable allocation record. Produced only by the reconciler.
    Corrections are new allocations or backend reversals, never edits.
    """

    payment_id: str
    document_id: str
    allocated_amount: Money
    remarks: str = ""
    document_type: str = "TEST"

    def __post_init__(self) -> None:
        if not self.allocated_amount.is_positive:
            raise ValidationError("allocated_amount must be greater than zero")


@dataclass(frozen=True)
class AllocationProposal:
    """
    Accepted batch.

    Guarantees:
        - ``payment_before.unallocated_amount - total_allocated
          == payment_after.unallocated_amount``.
        - ``invoice_balances_after`` covers exactly the allocated invoices.
    """

    payment_before: Payment
    payment_after: Payment
    allocations: tuple[PaymentAllocation, ...]
    invoice_balances_after: Mapping[str, Money] = field(default_factory=dict)

    @property
    def total_allocated(self) -> Money:
        total = Money.zero(self.payment_before.total_amount.currency)
        for allocation in self.allocations:
            total = total + allocation.allocated_amount
        return total

    @property
    def allocation_count(self) -> int:
        return len(self.allocations)


class PaymentAllocationReconciler:
    """
    Validate and propose payment allocations.

    Contract:
        Pure. Either returns a complete AllocationProposal or raises an
        AllocationError subclass whose ``reason`` is user-facing.
        Nothing is partially applied.
    """

    def __init__(self, document_type: str = "TEST"):
        self._document_type = document_type

    @traced_engine(
        "payment_allocation", "1.0",
        fingerprint_fields=("payment", "requested_allocations"),
    )
    def propose_allocations(
        self,
        payment: Payment,
        candidate_invoices: Sequence[CandidateInvoice],
        requested_allocations: Sequence[AllocationRequest],
    ) -> AllocationProposal:
        """
        Validate a batch and propose the resulting allocation records.

        Preconditions:
            - ``candidate_invoices`` is what the form offered; anything else
              is rejected as InvalidInvoice.
        Raises:
            AllocationError subclasses (see module docstring).
        """
        logger.info("allocation_started", extra={
            "payment_id": payment.payment_id,
            "unallocated_amount": str(payment.unallocated_amount.amount),
            "requested_lines": len(requested_allocations),
            "candidate_count": len(candidate_invoices),
        })

        try:
            lines = self._validate(payment, candidate_invoices, requested_allocations)
        except ValidationError as exc:
            logger.warning("allocation_rejected", extra={
                "payment_id": payment.payment_id,
                "error_code": exc.code,
                "reason": exc.reason,
            })
            raise

        currency = payment.total_amount.currency
        batch_total = sum((amount for _, amount, _ in lines), Decimal("0"))

        allocations = tuple(
            PaymentAllocation(
                payment_id=payment.payment_id,
                document_id=invoice.invoice_id,
                allocated_amount=Money.of(amount, currency),
                remarks=remarks,
                document_type=self._document_type,
            )
            for invoice, amount, remarks in lines
        )

        balances: dict[str, Money] = {}
        for invoice, amount, _ in lines:
            current = balances.get(invoice.invoice_id, invoice.balance_amount)
            balances[invoice.invoice_id] = current - Money.of(amount, currency)

        payment_after = replace(
            payment,
            allocated_amount=payment.allocated_amount + Money.of(batch_total, currency),
        )

        # INVARIANT: conservation of the payment's unallocated balance
        assert (
            payment.unallocated_amount.amount - batch_total
            == payment_after.unallocated_amount.amount
        ), "Allocation conservation violated"

        logger.info("allocation_proposed", extra={
            "payment_id": payment.payment_id,
            "allocation_count": len(allocations),
            "total_allocated": str(batch_total),
            "unallocated_after": str(payment_after.unallocated_amount.amount),
            "state_after": payment_after.allocation_state.value,
        })

        return AllocationProposal(
            payment_before=payment,
            payment_after=payment_after,
            allocations=allocations,
            invoice_balances_after=balances,
        )

    def _validate(
        self,
        payment: Payment,
        candidate_invoices: Sequence[CandidateInvoice],
        requested_allocations: Sequence[AllocationRequest],
    ) -> list[tuple[CandidateInvoice, Decimal, str]]:
        """Return (invoice, amount, remarks) per non-zero line, or raise."""
        if payment.status != DocumentStatus.POSTED:
            raise PaymentNotPostedError(payment.payment_id, payment.status.value)

        currency = payment.total_amount.currency
        quantum = currency.quantum
        for request in requested_allocations:
            if request.amount < 0:
                raise NegativeAmountError("allocated_amount", request.amount)
            if request.amount != request.amount.quantize(quantum):
                raise ValidationError(
                    f"Allocated amount {request.amount} has more than "
                    f"{currency.decimal_places} decimal places"
                )

        requested = [r for r in requested_allocations if r.amount > 0]
        if not requested:
            raise NoAllocationsError()

        candidates = {invoice.invoice_id: invoice for invoice in candidate_invoices}
        per_invoice: dict[str, Decimal] = {}
        lines: list[tuple[CandidateInvoice, Decimal, str]] = []

        for request in requested:
            invoice = candidates.get(request.invoice_id)
            if invoice is None:
                raise InvalidInvoiceError(request.invoice_id, "not among the outstanding invoices")
            if invoice.is_fully_paid:
                raise InvalidInvoiceError(invoice.invoice_id, "already fully paid")
            if invoice.balance_amount.currency != currency:
                raise InvalidInvoiceError(
                    invoice.invoice_id,
                    f"currency {invoice.balance_amount.currency} does not match "
                    f"payment currency {currency}",
                )

            cumulative = per_invoice.get(invoice.invoice_id, Decimal("0")) + request.amount
            if cumulative > invoice.balance_amount.amount:
                raise InvoiceOverAllocationError(
                    invoice.invoice_id, cumulative, invoice.balance_amount.amount
                )
            per_invoice[invoice.invoice_id] = cumulative
            lines.append((invoice, request.amount, request.remarks))

        batch_total = sum(per_invoice.values(), Decimal("0"))
        if batch_total > payment.unallocated_amount.amount:
            raise OverAllocationError(
                payment.payment_id, batch_total, payment.unallocated_amount.amount
            )
        return lines


def clamp_allocation_amount(
    entered: NumberLike,
    payment: Payment,
    invoice_balance: Money | NumberLike,
    other_lines_total: NumberLike = Decimal("0"),
) -> Decimal:
    """
    Live-typing helper for one allocation input.

    Clamps what the user typed to
    ``min(entered, unallocated - other_lines_total, invoice_balance)``,
    never below zero. This only shapes the input field; the submit path
    still goes through ``propose_allocations``, which rejects instead of
    coercing.
    """
    amount = max(Decimal("0"), to_decimal(entered, "allocated_amount"))
    balance = _as_money(invoice_balance, "balance_amount").amount
    headroom = payment.unallocated_amount.amount - to_decimal(other_lines_total, "other_lines_total")
    return max(Decimal("0"), min(amount, headroom, balance))


def remaining_unallocated(payment: Payment, requests: Iterable[AllocationRequest]) -> Decimal:
    """What the form shows as 'remaining': unallocated minus lines typed so far."""
    entered = sum((r.amount for r in requests), Decimal("0"))
    return payment.unallocated_amount.amount - entered


def select_eligible_invoices(
    invoices: Iterable[CandidateInvoice],
    party_id: str | None = None,
) -> list[CandidateInvoice]:
    """
    Invoices to offer for allocation: POSTED, UNPAID or PARTIAL, with a
    positive balance, and belonging to ``party_id`` when one is given.
    """
    party = str(party_id) if party_id is not None else None
    return [
        invoice
        for invoice in invoices
        if invoice.status == DocumentStatus.POSTED
        and invoice.payment_status in (InvoicePaymentStatus.UNPAID, InvoicePaymentStatus.PARTIAL)
        and invoice.balance_amount.is_positive
        and (party is None or invoice.party_id == party)
    ]


def select_allocatable_payments(payments: Iterable[Payment]) -> list[Payment]:
    """Payments to offer: POSTED with something left to allocate."""
    return [
        payment
        for payment in payments
        if payment.status == DocumentStatus.POSTED
        and payment.unallocated_amount.is_positive
    ]
