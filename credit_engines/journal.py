"""
Module: credit_engines.journal
Responsibility:
    Derive the four-line journal entry set for a vendor credit: the
    payable it reduces, the input GST it reverses, and the cost it credits
    back, with debit and credit totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Uses credit_engines.tax for the CGST/SGST split.

Invariants enforced:
    - Exactly four lines, in fixed order: Accounts Payable, Input SGST,
      Input CGST, Cost of Goods Sold.
    - Each line has a debit or a credit, never both.  Amounts are signed:
      a discount above ``sub_total`` leaves a negative COGS credit.
    - Balance is judged after ``round_money``; an imbalance is reported,
      never corrected.

Failure modes:
    - None raised.  An unbalanced set is logged at WARNING
      (``journal_unbalanced``) and flagged via ``is_balanced=False``.

Audit relevance:
    The deriver does not reconcile ``credit.amount`` against items, taxes
    and discounts.  Surfacing the imbalance is what lets an accountant catch
    a credit whose header amount disagrees with its lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from credit_engines.tax import GstCalculator
from credit_kernel.domain.documents import VendorCredit
from credit_kernel.domain.values import ZERO, round_money, sum_amounts
from credit_kernel.logging_config import get_logger

logger = get_logger("engines.journal")


@dataclass(frozen=True)
class JournalAccounts:
    """Account names used on the derived journal lines."""

    accounts_payable: str = "Accounts Payable"
    input_sgst: str = "Input SGST"
    input_cgst: str = "Input CGST"
    cost_of_goods_sold: str = "Cost of Goods Sold"

    def __post_init__(self) -> None:
        for name in ("accounts_payable", "input_sgst", "input_cgst", "cost_of_goods_sold"):
            if not getattr(self, name):
                raise ValueError(f"Journal account '{name}' cannot be empty")


@dataclass(frozen=True)
class JournalEntry:
    """One journal line.  At most one side carries a (signed) amount."""

    account: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.debit != ZERO and self.credit != ZERO:
            raise ValueError(f"Journal line for {self.account} has both debit and credit")


@dataclass(frozen=True)
class JournalEntrySet:
    """The derived lines with their totals."""

    entries: tuple[JournalEntry, ...]
    total_debit: Decimal
    total_credit: Decimal

    @property
    def imbalance(self) -> Decimal:
        """Rounded ``total_debit - total_credit``."""
        return round_money(self.total_debit) - round_money(self.total_credit)

    @property
    def is_balanced(self) -> bool:
        return self.imbalance == ZERO


class JournalDeriver:
    """
    Build journal entries for a vendor credit.

    COGS is ``sub_total - discount_amount`` (discount treated as 0 when
    absent).  CGST and SGST come from the items via GstCalculator, not from
    the credit's stored tax fields.
    """

    def __init__(
        self,
        calculator: GstCalculator | None = None,
        accounts: JournalAccounts | None = None,
    ):
        self.calculator = calculator or GstCalculator()
        self.accounts = accounts or JournalAccounts()

    def build_journal_entries(self, credit: VendorCredit) -> JournalEntrySet:
        split = self.calculator.compute_tax(credit.items)
        cost_of_goods_sold = credit.sub_total - (credit.discount_amount or ZERO)

        entries = (
            JournalEntry(self.accounts.accounts_payable, debit=credit.amount),
            JournalEntry(self.accounts.input_sgst, credit=split.sgst),
            JournalEntry(self.accounts.input_cgst, credit=split.cgst),
            JournalEntry(self.accounts.cost_of_goods_sold, credit=cost_of_goods_sold),
        )
        result = JournalEntrySet(
            entries=entries,
            total_debit=sum_amounts(e.debit for e in entries),
            total_credit=sum_amounts(e.credit for e in entries),
        )

        if not result.is_balanced:
            logger.warning("journal_unbalanced", extra={
                "credit_id": credit.id,
                "total_debit": str(result.total_debit),
                "total_credit": str(result.total_credit),
                "imbalance": str(result.imbalance),
            })
        return result
