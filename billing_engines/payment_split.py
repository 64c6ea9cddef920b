"""
Module: billing_engines.payment_split
Responsibility:
    Keep the payment lines of a purchase or sales invoice in step with its
    final total: propose a single cash line for the full amount, keep that
    line's amount current while it is still the auto-generated one, and
    leave anything the user edited alone.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Only a line flagged ``is_auto_generated`` is ever rewritten.
    - Auto-generated amounts are ``round2(final_total)``.
    - Line numbers are 1-based and contiguous after any removal.

Usage:
    from billing_engines.payment_split import sync_default_payment

    lines = sync_default_payment(lines, totals.final_total, accounts)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from billing_kernel.domain.values import NumberLike, round2, to_decimal
from billing_kernel.exceptions import MissingSelectionError, NegativeAmountError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.payment_split")

AUTO_PAYMENT_DESCRIPTION = "Full payment"


class PaymentMode(str, Enum):
    CASH = "CASH"
    BANK = "BANK"


@dataclass(frozen=True)
class Account:
    """Ledger account as listed by the chart of accounts."""

    account_id: int
    code: str = ""
    name: str = ""
    account_type: str = ""

    @property
    def is_cash(self) -> bool:
        return self.code.startswith("CASH") or "cash" in self.name.lower()

    @property
    def is_bank(self) -> bool:
        return self.code.startswith("BANK") or "bank" in self.account_type.lower()


@dataclass(frozen=True)
class PaymentLine:
    """One settlement line of an invoice."""

    line_no: int
    payment_mode: PaymentMode
    account_id: int | None
    amount: Decimal
    bank_account_id: int | None = None
    description: str = ""
    transaction_reference: str = ""
    is_auto_generated: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "payment_mode", PaymentMode(self.payment_mode))
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
        if self.amount < 0:
            raise NegativeAmountError("amount", self.amount)
        # Bank details only travel with bank payments.
        if self.payment_mode == PaymentMode.CASH and self.bank_account_id is not None:
            object.__setattr__(self, "bank_account_id", None)

    @property
    def is_valid(self) -> bool:
        """Lines that will be submitted: an account is chosen and amount > 0."""
        return bool(self.account_id) and self.amount > 0


def find_cash_account(accounts: Iterable[Account]) -> Account | None:
    """First account whose code starts with CASH or whose name mentions cash."""
    return next((account for account in accounts if account.is_cash), None)


def find_bank_accounts(accounts: Iterable[Account]) -> list[Account]:
    return [account for account in accounts if account.is_bank]


def sync_default_payment(
    lines: Sequence[PaymentLine],
    final_total: NumberLike,
    accounts: Sequence[Account],
) -> tuple[PaymentLine, ...]:
    """
    Return the payment lines to show after the invoice total changed.

    - No lines yet, a positive total and a cash account: one auto-generated
      CASH line for the full (rounded) total.
    - A single auto-generated line: same line with the new total.
    - Anything else: unchanged.
    """
    total = round2(to_decimal(final_total, "final_total"))

    if not lines:
        cash_account = find_cash_account(accounts)
        if total <= 0 or cash_account is None:
            return ()
        logger.debug("default_payment_created", extra={
            "account_id": cash_account.account_id,
            "amount": str(total),
        })
        return (
            PaymentLine(
                line_no=1,
                payment_mode=PaymentMode.CASH,
                account_id=cash_account.account_id,
                amount=total,
                description=AUTO_PAYMENT_DESCRIPTION,
                is_auto_generated=True,
            ),
        )

    if len(lines) == 1 and lines[0].is_auto_generated:
        if lines[0].amount == total:
            return tuple(lines)
        return (replace(lines[0], amount=total),)

    return tuple(lines)


def edit_payment_line(line: PaymentLine, **changes) -> PaymentLine:
    """Apply a user edit. The edited line is no longer auto-generated."""
    return replace(line, is_auto_generated=False, **changes)


def add_payment_line(lines: Sequence[PaymentLine]) -> tuple[PaymentLine, ...]:
    """Append an empty CASH line."""
    blank = PaymentLine(
        line_no=len(lines) + 1,
        payment_mode=PaymentMode.CASH,
        account_id=None,
        amount=Decimal("0"),
    )
    return (*lines, blank)


def remove_payment_line(lines: Sequence[PaymentLine], index: int) -> tuple[PaymentLine, ...]:
    """Drop the line at ``index`` and renumber the rest from 1."""
    kept = [line for i, line in enumerate(lines) if i != index]
    return tuple(replace(line, line_no=i + 1) for i, line in enumerate(kept))


def valid_payment_lines(lines: Iterable[PaymentLine]) -> list[PaymentLine]:
    """Lines to submit. BANK lines must name their bank account."""
    valid = []
    for line in lines:
        if not line.is_valid:
            continue
        if line.payment_mode == PaymentMode.BANK and not line.bank_account_id:
            raise MissingSelectionError("bank account")
        valid.append(line)
    return valid


def payment_lines_total(lines: Iterable[PaymentLine]) -> Decimal:
    return sum((line.amount for line in lines), Decimal("0"))
