"""
Refund Engine - Return part or all of a vendor credit's balance as cash.

A refund reduces the balance outside the bill-allocation path.  Once the
balance reaches zero the credit is REFUNDED; a partial refund leaves the
status unchanged.  Pure functions with no I/O.

Usage:
    from credit_engines.refund import CreditRefundCalculator

    result = CreditRefundCalculator().refund(credit, "150.00", reason="overbilled")
    print(result.credit.balance, result.credit.status)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from credit_engines.allocation import ensure_credit_allocatable
from credit_engines.tracer import traced_engine
from credit_kernel.domain.documents import VendorCredit, VendorCreditStatus
from credit_kernel.domain.values import ZERO, parse_amount, rounds_to_zero
from credit_kernel.exceptions import InvalidRefundAmountError
from credit_kernel.logging_config import get_logger

logger = get_logger("engines.refund")


@dataclass(frozen=True)
class RefundResult:
    """The refunded credit and the amount taken off its balance."""

    credit: VendorCredit
    amount: Decimal
    reason: str = ""

    @property
    def is_full_refund(self) -> bool:
        return self.credit.status == VendorCreditStatus.REFUNDED


class CreditRefundCalculator:
    """
    Apply a cash refund to a vendor credit.

    Contract:
        ``0 < amount <= credit.balance``; the credit must be OPEN.
    Guarantees:
        - ``new balance == balance - amount``.
        - Status becomes REFUNDED when the new balance rounds to 0.00.
        - The input credit is never mutated.
    """

    def default_amount(self, credit: VendorCredit) -> Decimal:
        """Amount offered when a refund starts: the whole balance."""
        return credit.balance

    @traced_engine("credit_refund", "1.0", fingerprint_fields=("credit", "raw_amount"))
    def refund(
        self,
        credit: VendorCredit,
        raw_amount: object,
        reason: str = "",
    ) -> RefundResult:
        ensure_credit_allocatable(credit)

        amount = parse_amount(raw_amount)
        if amount is None or amount <= ZERO or amount > credit.balance:
            logger.warning("refund_amount_rejected", extra={
                "credit_id": credit.id,
                "raw_amount": str(raw_amount),
                "balance": str(credit.balance),
            })
            raise InvalidRefundAmountError(credit.id, raw_amount, credit.balance)

        new_balance = credit.balance - amount
        status = VendorCreditStatus.REFUNDED if rounds_to_zero(new_balance) else credit.status
        refunded = replace(credit, balance=new_balance, status=status)

        logger.info("credit_refunded", extra={
            "credit_id": credit.id,
            "amount": str(amount),
            "new_balance": str(new_balance),
            "credit_status": status.value,
            "reason": reason,
        })
        return RefundResult(credit=refunded, amount=amount, reason=reason)
