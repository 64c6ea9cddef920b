"""
billing_services.submission -- Payload building and guarded persistence calls.

Responsibility:
    Package calculated documents into backend payloads (rounding every
    amount exactly once), hand them to the injected PersistenceGateway,
    and translate gateway failures into the kernel's RemoteError types.
    Holds the transient state of one open form (``FormSession``).

Architecture position:
    Services -- orchestration over engines, config and collaborators.
    The only module that calls the PersistenceGateway.

Invariants enforced:
    - Amount fields are passed through ``round2`` once, at payload build.
    - At most one in-flight persistence call per document key.
    - No automatic retry. A conflict means reload, a transport failure
      means the user may resubmit by hand.
    - Discarding a form session persists nothing.

Failure modes:
    - MissingSelectionError: no billable lines.
    - SubmissionInFlightError: same document submitted while a call runs.
    - ConflictError: backend rejected the payload (``success: false``) or
      raised a conflict itself.
    - TransportError: network/OS level failure talking to the backend.

Usage:
    submitter = DocumentSubmitter(gateway)
    response = submitter.create_invoice(payload, document_key=payload["document_number"])
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from decimal import Decimal
from typing import Any

from billing_config import BillingConfig
from billing_engines.allocation import AllocationProposal
from billing_engines.document_totals import DocumentTotals, DocumentTotalsAggregator
from billing_engines.line_item import LineItem, LineItemCalculator, LineItemResult
from billing_engines.payment_split import (
    Account,
    PaymentLine,
    sync_default_payment,
    valid_payment_lines,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.context import RequestContext, generate_document_number
from billing_kernel.domain.values import NumberLike, Percent, round2, to_decimal
from billing_kernel.exceptions import (
    ConflictError,
    FormDiscardedError,
    MissingSelectionError,
    SubmissionInFlightError,
    TransportError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_services.gateways import PersistenceGateway

logger = get_logger("services.submission")

AMOUNT_KEY_MARKERS: tuple[str, ...] = (
    "amount", "price", "total", "taxable", "discount",
    "cgst", "sgst", "igst", "cess", "tax",
    "subtotal", "roundoff", "mrp",
)


def _is_amount_key(key: str) -> bool:
    return any(marker in key for marker in AMOUNT_KEY_MARKERS)


def round_amount_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Return a copy of ``data`` with every numeric amount-like field rounded.

    A field is amount-like when its key contains one of
    ``AMOUNT_KEY_MARKERS``. Nested mappings and lists of mappings are
    handled recursively; other values are copied as is.
    """
    rounded: dict[str, Any] = {}
    for key, value in data.items():
        if (
            isinstance(value, (Decimal, int))
            and not isinstance(value, bool)
            and _is_amount_key(str(key))
        ):
            rounded[key] = round2(value)
        elif isinstance(value, Mapping):
            rounded[key] = round_amount_fields(value)
        elif isinstance(value, (list, tuple)):
            rounded[key] = [
                round_amount_fields(item) if isinstance(item, Mapping) else item
                for item in value
            ]
        else:
            rounded[key] = value
    return rounded


def _line_payload(line_no: int, result: LineItemResult) -> dict[str, Any]:
    line = result.line
    rates = line.tax_rates
    return {
        "line_no": line_no,
        "item_id": line.line_id,
        "description": line.description,
        "quantity": line.quantity,
        "free_quantity": line.free_quantity,
        "unit_price": line.unit_price.amount,
        "discount_percent": line.discount_percent.value,
        "discount_amount": result.discount_amount,
        "taxable_amount": result.taxable_amount,
        "cgst_rate": rates.cgst.value,
        "cgst_amount": result.cgst_amount,
        "sgst_rate": rates.sgst.value,
        "sgst_amount": result.sgst_amount,
        "igst_rate": rates.igst.value,
        "igst_amount": result.igst_amount,
        "cess_rate": rates.cess.value,
        "cess_amount": result.cess_amount,
        "tax_amount": result.tax_amount,
        "total_amount": result.total_amount,
    }


def _payment_payload(line: PaymentLine) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "line_no": line.line_no,
        "payment_mode": line.payment_mode.value,
        "account_id": line.account_id,
        "amount": line.amount,
        "description": line.description,
        "transaction_reference": line.transaction_reference,
    }
    if line.bank_account_id:
        payload["bank_account_id"] = line.bank_account_id
    return payload


def build_invoice_payload(
    document_number: str,
    lines: Sequence[LineItemResult],
    totals: DocumentTotals,
    payment_lines: Sequence[PaymentLine] = (),
    **header: Any,
) -> dict[str, Any]:
    """
    Package computed values for the backend.

    Lines with zero quantity are dropped. ``header`` carries the
    document's non-calculated fields (party, dates, notes) unchanged.

    Raises:
        MissingSelectionError: if no line has a positive quantity.
    """
    billable = [result for result in lines if result.line.quantity > 0]
    if not billable:
        raise MissingSelectionError("item", "Please add at least one item")

    payload: dict[str, Any] = {
        "document_number": document_number,
        **header,
        "currency": totals.currency,
        "subtotal_amount": totals.subtotal,
        "gross_amount": totals.gross_amount,
        "items_discount_amount": totals.items_discount_amount,
        "taxable_amount": totals.taxable_amount,
        "cgst_amount": totals.cgst_amount,
        "sgst_amount": totals.sgst_amount,
        "igst_amount": totals.igst_amount,
        "cess_amount": totals.cess_amount,
        "tax_amount": totals.tax_amount,
        "discount_percent": totals.discount_percent.value,
        "discount_amount": totals.discount_amount,
        "roundoff": totals.roundoff,
        "total_amount": totals.final_total,
        "items": [_line_payload(i, result) for i, result in enumerate(billable, start=1)],
    }

    valid_payments = valid_payment_lines(payment_lines)
    if valid_payments:
        payload["payment_details"] = [_payment_payload(p) for p in valid_payments]

    return round_amount_fields(payload)


def build_allocation_payload(proposal: AllocationProposal) -> dict[str, Any]:
    """Backend body for an accepted allocation batch."""
    return round_amount_fields({
        "payment_id": proposal.payment_before.payment_id,
        "allocations": [
            {
                "document_id": allocation.document_id,
                "document_type": allocation.document_type,
                "allocated_amount": allocation.allocated_amount.amount,
                "remarks": allocation.remarks,
            }
            for allocation in proposal.allocations
        ],
    })


class SubmissionGuard:
    """
    Tracks which documents have a persistence call in flight.

    Thread-safe. ``submitting(key)`` is the normal way in: it releases the
    key however the call ends.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def begin(self, document_key: str) -> None:
        with self._lock:
            if document_key in self._in_flight:
                raise SubmissionInFlightError(document_key)
            self._in_flight.add(document_key)

    def end(self, document_key: str) -> None:
        with self._lock:
            self._in_flight.discard(document_key)

    def is_in_flight(self, document_key: str) -> bool:
        with self._lock:
            return document_key in self._in_flight

    @contextmanager
    def submitting(self, document_key: str) -> Iterator[None]:
        self.begin(document_key)
        try:
            yield
        finally:
            self.end(document_key)


class DocumentSubmitter:
    """
    Send payloads to the PersistenceGateway under a SubmissionGuard.

    Contract:
        Returns the backend response on success. Never retries.
    """

    def __init__(self, gateway: PersistenceGateway, guard: SubmissionGuard | None = None):
        self._gateway = gateway
        self._guard = guard or SubmissionGuard()

    @property
    def guard(self) -> SubmissionGuard:
        return self._guard

    def create_invoice(
        self,
        payload: Mapping[str, Any],
        document_key: str | None = None,
    ) -> Mapping[str, Any]:
        key = document_key or str(payload.get("document_number", "new-invoice"))
        return self._call(
            "create_invoice", key, lambda: self._gateway.create_invoice(payload)
        )

    def update_invoice(self, document_id: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        return self._call(
            "update_invoice",
            f"invoice:{document_id}",
            lambda: self._gateway.update_invoice(document_id, payload),
        )

    def allocate_payment(self, proposal: AllocationProposal) -> Mapping[str, Any]:
        payment_id = proposal.payment_before.payment_id
        payload = build_allocation_payload(proposal)
        return self._call(
            "allocate_payment",
            f"payment:{payment_id}",
            lambda: self._gateway.allocate_payment(payment_id, payload),
        )

    def _call(
        self,
        operation: str,
        document_key: str,
        send: Callable[[], Mapping[str, Any]],
    ) -> Mapping[str, Any]:
        with self._guard.submitting(document_key), LogContext.bind(document_id=document_key):
            logger.info("submission_started", extra={"operation": operation})
            try:
                response = send()
            except ConflictError as exc:
                logger.warning("submission_conflict", extra={
                    "operation": operation,
                    "reason": exc.reason,
                })
                raise
            except (ConnectionError, TimeoutError, OSError) as exc:
                logger.error("submission_transport_failed", extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                })
                raise TransportError(
                    operation, str(exc) or f"Failed to {operation.replace('_', ' ')}"
                ) from exc

            if response is not None and response.get("success") is False:
                reason = response.get("message") or f"Failed to {operation.replace('_', ' ')}"
                logger.warning("submission_rejected", extra={
                    "operation": operation,
                    "reason": reason,
                })
                raise ConflictError(operation, reason)

            logger.info("submission_succeeded", extra={"operation": operation})
            return response if response is not None else {}


class FormSession:
    """
    Transient state of one open order/invoice form.

    Totals are recomputed in full from the lines on every call. Nothing
    is persisted until the caller submits; ``discard()`` drops the state.
    """

    def __init__(
        self,
        document_kind: str,
        context: RequestContext,
        config: BillingConfig,
        clock: Clock | None = None,
        accounts: Sequence[Account] = (),
    ):
        self.document_kind = document_kind
        self.context = context
        self.document_number = generate_document_number(
            config.document_prefixes.for_kind(document_kind),
            context,
            clock or SystemClock(),
        )
        self._calculator = LineItemCalculator()
        self._aggregator = DocumentTotalsAggregator(config.roundoff_warning_limit)
        self._accounts = tuple(accounts)
        self.lines: list[LineItem] = []
        self.payment_lines: tuple[PaymentLine, ...] = ()
        self.discount_percent = Percent.zero("discount_percent")
        self.roundoff = Decimal("0")
        self._discarded = False

    @property
    def is_discarded(self) -> bool:
        return self._discarded

    def add_line(self, line: LineItem) -> None:
        self.lines.append(line)

    def set_document_discount(self, discount_percent: NumberLike) -> None:
        self.discount_percent = Percent.of(discount_percent, "discount_percent")

    def set_roundoff(self, roundoff: NumberLike) -> None:
        self.roundoff = to_decimal(roundoff, "roundoff")

    def calculate(self) -> tuple[tuple[LineItemResult, ...], DocumentTotals]:
        """Recompute every line and the totals, then resync the auto payment."""
        results = self._calculator.calculate_many(self.lines)
        totals = self._aggregator.aggregate(
            lines=results,
            discount_percent=self.discount_percent,
            roundoff=self.roundoff,
        )
        self.payment_lines = sync_default_payment(
            self.payment_lines, totals.final_total, self._accounts
        )
        return results, totals

    def build_payload(self, **header: Any) -> dict[str, Any]:
        if self._discarded:
            raise FormDiscardedError(self.document_number)
        results, totals = self.calculate()
        return build_invoice_payload(
            self.document_number, results, totals, self.payment_lines, **header
        )

    def discard(self) -> None:
        """Cancel the form. Drops all transient state without persisting."""
        logger.info("form_discarded", extra={
            "document_kind": self.document_kind,
            "document_number": self.document_number,
            "line_count": len(self.lines),
            **self.context.log_fields(),
        })
        self.lines.clear()
        self.payment_lines = ()
        self.discount_percent = Percent.zero("discount_percent")
        self.roundoff = Decimal("0")
        self._discarded = True
