"""
Tests for the default payment split.

Covers:
- Auto-generated cash line creation and resync
- User-edited lines are never overwritten
- Cash/bank account lookup and line bookkeeping
"""

from decimal import Decimal

import pytest

from billing_engines.payment_split import (
    AUTO_PAYMENT_DESCRIPTION,
    Account,
    PaymentLine,
    PaymentMode,
    add_payment_line,
    edit_payment_line,
    find_bank_accounts,
    find_cash_account,
    payment_lines_total,
    remove_payment_line,
    sync_default_payment,
    valid_payment_lines,
)
from billing_kernel.exceptions import MissingSelectionError, NegativeAmountError

ACCOUNTS = [
    Account(account_id=1, code="SALES", name="Sales", account_type="income"),
    Account(account_id=2, code="CASH001", name="Cash in Hand", account_type="asset"),
    Account(account_id=3, code="HDFC", name="HDFC Current", account_type="Bank Account"),
    Account(account_id=4, code="BANK-SBI", name="SBI", account_type="asset"),
]


class TestSyncDefaultPayment:

    def test_creates_auto_cash_line(self):
        lines = sync_default_payment((), Decimal("1180.004"), ACCOUNTS)

        assert len(lines) == 1
        line = lines[0]
        assert line.is_auto_generated
        assert line.payment_mode == PaymentMode.CASH
        assert line.account_id == 2
        assert line.amount == Decimal("1180.00")
        assert line.description == AUTO_PAYMENT_DESCRIPTION
        assert line.line_no == 1

    def test_no_line_for_zero_total(self):
        assert sync_default_payment((), Decimal("0"), ACCOUNTS) == ()

    def test_no_line_without_cash_account(self):
        accounts = [Account(account_id=9, code="BANK1", name="Bank")]
        assert sync_default_payment((), Decimal("10"), accounts) == ()

    def test_auto_line_follows_total(self):
        lines = sync_default_payment((), Decimal("100"), ACCOUNTS)
        lines = sync_default_payment(lines, Decimal("250.555"), ACCOUNTS)

        assert lines[0].amount == Decimal("250.56")
        assert lines[0].is_auto_generated

    def test_edited_line_kept(self):
        lines = sync_default_payment((), Decimal("100"), ACCOUNTS)
        edited = (edit_payment_line(lines[0], amount=Decimal("40")),)

        assert sync_default_payment(edited, Decimal("300"), ACCOUNTS) == edited

    def test_user_line_with_auto_description_kept(self):
        user_line = PaymentLine(
            line_no=1, payment_mode="CASH", account_id=2,
            amount=Decimal("10"), description=AUTO_PAYMENT_DESCRIPTION,
        )
        assert sync_default_payment((user_line,), Decimal("99"), ACCOUNTS) == (user_line,)

    def test_multiple_lines_untouched(self):
        lines = sync_default_payment((), Decimal("100"), ACCOUNTS)
        lines = add_payment_line(lines)
        assert sync_default_payment(lines, Decimal("500"), ACCOUNTS) == lines


class TestAccounts:

    def test_cash_by_code_or_name(self):
        assert find_cash_account(ACCOUNTS).account_id == 2
        by_name = [Account(account_id=7, code="X", name="Petty CASH box")]
        assert find_cash_account(by_name).account_id == 7

    def test_no_cash_account(self):
        assert find_cash_account([ACCOUNTS[0]]) is None

    def test_bank_by_code_or_type(self):
        assert [a.account_id for a in find_bank_accounts(ACCOUNTS)] == [3, 4]


class TestPaymentLines:

    def test_cash_line_drops_bank_account(self):
        line = PaymentLine(
            line_no=1, payment_mode="CASH", account_id=2,
            amount=Decimal("5"), bank_account_id=3,
        )
        assert line.bank_account_id is None

    def test_negative_amount_rejected(self):
        with pytest.raises(NegativeAmountError):
            PaymentLine(line_no=1, payment_mode="CASH", account_id=2, amount=Decimal("-1"))

    def test_remove_renumbers(self):
        lines = add_payment_line(add_payment_line(add_payment_line(())))
        remaining = remove_payment_line(lines, 0)
        assert [line.line_no for line in remaining] == [1, 2]

    def test_valid_lines_need_account_and_amount(self):
        lines = [
            PaymentLine(line_no=1, payment_mode="CASH", account_id=2, amount=Decimal("10")),
            PaymentLine(line_no=2, payment_mode="CASH", account_id=None, amount=Decimal("10")),
            PaymentLine(line_no=3, payment_mode="CASH", account_id=2, amount=Decimal("0")),
        ]
        assert [line.line_no for line in valid_payment_lines(lines)] == [1]

    def test_bank_line_requires_bank_account(self):
        line = PaymentLine(line_no=1, payment_mode="BANK", account_id=3, amount=Decimal("10"))
        with pytest.raises(MissingSelectionError):
            valid_payment_lines([line])

    def test_total(self):
        lines = [
            PaymentLine(line_no=1, payment_mode="CASH", account_id=2, amount=Decimal("10.10")),
            PaymentLine(line_no=2, payment_mode="BANK", account_id=3, amount=Decimal("5"), bank_account_id=3),
        ]
        assert payment_lines_total(lines) == Decimal("15.10")
