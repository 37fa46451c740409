"""Tests for the refund engine (credit_engines/refund.py)."""

from decimal import Decimal

import pytest

from credit_engines.refund import CreditRefundCalculator
from credit_kernel.domain.documents import VendorCreditStatus
from credit_kernel.exceptions import (
    CreditClosedError,
    CreditVoidedError,
    InvalidRefundAmountError,
)
from tests.factories import make_credit


class TestRefund:
    """Tests for CreditRefundCalculator.refund."""

    def setup_method(self):
        self.calculator = CreditRefundCalculator()

    def test_partial_refund_keeps_status(self, credit):
        result = self.calculator.refund(credit, "150", reason="overbilled")

        assert result.amount == Decimal("150")
        assert result.credit.balance == Decimal("350.00")
        assert result.credit.status == VendorCreditStatus.OPEN
        assert result.reason == "overbilled"
        assert not result.is_full_refund

    def test_full_refund_marks_refunded(self, credit):
        result = self.calculator.refund(credit, credit.balance)

        assert result.credit.balance == Decimal("0")
        assert result.credit.status == VendorCreditStatus.REFUNDED
        assert result.is_full_refund

    def test_default_amount_is_balance(self):
        credit = make_credit(balance="123.45")
        assert self.calculator.default_amount(credit) == Decimal("123.45")

    @pytest.mark.parametrize("raw", ["0", "-1", "500.01", "abc", "", None])
    def test_invalid_amounts(self, credit, raw):
        with pytest.raises(InvalidRefundAmountError) as exc_info:
            self.calculator.refund(credit, raw)

        assert exc_info.value.code == "INVALID_REFUND_AMOUNT"
        assert exc_info.value.balance == credit.balance

    def test_input_not_mutated(self, credit):
        self.calculator.refund(credit, "100")

        assert credit.balance == Decimal("500.00")

    @pytest.mark.parametrize(
        "status, error",
        [
            (VendorCreditStatus.VOID, CreditVoidedError),
            (VendorCreditStatus.CLOSED, CreditClosedError),
        ],
    )
    def test_credit_must_be_open(self, status, error):
        credit = make_credit(balance="0", status=status)

        with pytest.raises(error):
            self.calculator.refund(credit, "1")
