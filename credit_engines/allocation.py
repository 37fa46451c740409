"""
Module: credit_engines.allocation
Responsibility:
    Distribute a vendor credit's remaining balance across the vendor's
    outstanding bills.  Builds an interactive allocation proposal one bill
    at a time, guards every edit against the bill's balance due and the
    credit still available, and commits the proposal as a single
    all-or-nothing update of the credit and the affected bills.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import credit_kernel (exceptions, logging, domain records).

Invariants enforced:
    - Proposal ceiling: for proposals built via ``set_proposed_amount``,
      the total never exceeds the credit balance and each entry never
      exceeds that bill's ``balance_due``.
    - Conservation: after commit, ``new_credit.balance == balance - total``
      and each bill's ``balance_due`` falls by exactly the applied amount.
    - Status: CLOSED / PAID are decided on the value rounded to currency
      precision (``round_money``), never on the raw Decimal.
    - Atomicity: inputs are frozen and never mutated; every updated record
      is built before the result is returned, so a failure leaves nothing
      applied.
    - Purity: no clock access.  The applied date is an explicit parameter.

Failure modes:
    - CreditVoidedError / CreditClosedError / CreditRefundedError /
      CreditNotOpenError when the credit cannot receive allocations.
    - ProposalCreditMismatchError when a proposal is used on another credit.
    - EmptyAllocationError when a commit would apply nothing.
    - AllocationCommitError when a proposal no longer fits the bills or the
      credit (stale data); lists every offending bill.
    - Edit rejections are *reported* as ValidationRejected inside
      ProposalEdit, never raised.

Usage:
    from credit_engines.allocation import CreditAllocationEngine

    engine = CreditAllocationEngine()
    proposal = engine.start_proposal(credit)
    edit = engine.set_proposed_amount(proposal, "bill-1", "300", credit, bills)
    result = engine.commit_allocation(credit, edit.proposal, bills, today)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from credit_engines.tracer import traced_engine
from credit_kernel.domain.documents import (
    AppliedCredit,
    Bill,
    BillStatus,
    VendorCredit,
    VendorCreditStatus,
)
from credit_kernel.domain.values import ZERO, parse_amount, rounds_to_zero, sum_amounts
from credit_kernel.exceptions import (
    AllocationCommitError,
    CreditClosedError,
    CreditNotOpenError,
    CreditRefundedError,
    CreditVoidedError,
    EmptyAllocationError,
    NoEligibleBillsError,
    ProposalCreditMismatchError,
    ValidationRejected,
)
from credit_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

# Rejection reasons carried by ValidationRejected.reason
REASON_INVALID_AMOUNT = "invalid_amount"
REASON_UNKNOWN_BILL = "unknown_bill"
REASON_NOT_ELIGIBLE = "bill_not_eligible"
REASON_EXCEEDS_CEILING = "exceeds_ceiling"


def ensure_credit_allocatable(credit: VendorCredit) -> None:
    """Raise the matching CreditStateError unless the credit is OPEN."""
    status = credit.status
    if status == VendorCreditStatus.OPEN:
        return
    logger.warning("credit_not_allocatable", extra={
        "credit_id": credit.id,
        "status": status.value,
    })
    if status == VendorCreditStatus.VOID:
        raise CreditVoidedError(credit.id)
    if status == VendorCreditStatus.CLOSED:
        raise CreditClosedError(credit.id)
    if status == VendorCreditStatus.REFUNDED:
        raise CreditRefundedError(credit.id)
    raise CreditNotOpenError(credit.id, status.value)


def resolve_applied_date(credit: VendorCredit, auto_date: bool, today: date) -> date:
    """
    Pick the date stamped on applied-credit records.

    ``auto_date`` true -> ``today``; otherwise the credit's own date.
    """
    return today if auto_date else credit.credit_date


def _is_eligible(bill: Bill, vendor_id: str) -> bool:
    return bill.vendor_id == vendor_id and bill.accepts_credit


@dataclass(frozen=True)
class AllocationProposal:
    """
    A transient, ordered mapping of bill id to proposed credit amount.

    Contract:
        Immutable.  ``with_amount`` returns a new proposal; entry order is
        the order in which bills were first touched.
    Guarantees:
        - Amounts are non-negative Decimals.
        - Each bill id appears at most once.
    Non-goals:
        - Does not check ceilings itself; ``set_proposed_amount`` does.
    """

    credit_id: str
    entries: tuple[tuple[str, Decimal], ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for bill_id, amount in self.entries:
            if bill_id in seen:
                raise ValueError(f"Duplicate proposal entry for bill {bill_id}")
            seen.add(bill_id)
            if not isinstance(amount, Decimal):
                raise ValueError(f"Proposal amount for bill {bill_id} must be Decimal")
            if amount < ZERO:
                raise ValueError(f"Proposal amount for bill {bill_id} cannot be negative")

    def amount_for(self, bill_id: str) -> Decimal:
        """Proposed amount for ``bill_id`` (0 if not proposed)."""
        for entry_id, amount in self.entries:
            if entry_id == bill_id:
                return amount
        return ZERO

    def with_amount(self, bill_id: str, amount: Decimal) -> AllocationProposal:
        """Return a copy with ``bill_id`` set to ``amount``, keeping entry order."""
        updated = []
        found = False
        for entry_id, existing in self.entries:
            if entry_id == bill_id:
                updated.append((entry_id, amount))
                found = True
            else:
                updated.append((entry_id, existing))
        if not found:
            updated.append((bill_id, amount))
        return replace(self, entries=tuple(updated))

    def as_dict(self) -> dict[str, Decimal]:
        return dict(self.entries)

    @property
    def total(self) -> Decimal:
        return sum_amounts(amount for _, amount in self.entries)

    @property
    def positive_entries(self) -> tuple[tuple[str, Decimal], ...]:
        return tuple((b, a) for b, a in self.entries if a > ZERO)


@dataclass(frozen=True)
class ProposalEdit:
    """
    Outcome of one interactive edit.

    ``proposal`` is the new proposal when accepted and the unchanged one
    when rejected; ``rejection`` explains a rejected edit.
    """

    proposal: AllocationProposal
    accepted: bool
    rejection: ValidationRejected | None = None


@dataclass(frozen=True)
class CandidateBillSet:
    """Bills that may receive credit for one vendor."""

    vendor_id: str
    bills: tuple[Bill, ...]
    notice: NoEligibleBillsError | None = None

    @property
    def is_empty(self) -> bool:
        return not self.bills


@dataclass(frozen=True)
class BillApplication:
    """What one bill received in a commit."""

    bill_id: str
    bill_number: str
    amount: Decimal
    balance_due_before: Decimal
    balance_due_after: Decimal
    status_after: BillStatus


@dataclass(frozen=True)
class AllocationCommitResult:
    """
    Result of a committed allocation.

    Contract:
        Frozen dataclass carrying the updated credit, the updated bills (in
        proposal order) and one ``BillApplication`` per bill touched.
    Guarantees:
        - ``credit.balance == original balance - total_applied``.
        - ``total_applied == sum(a.amount for a in applications)``.
    Non-goals:
        - Does not persist anything; the caller stores the records.
    """

    credit: VendorCredit
    bills: tuple[Bill, ...]
    applications: tuple[BillApplication, ...]
    total_applied: Decimal
    applied_date: date | None = field(default=None)

    def bill(self, bill_id: str) -> Bill | None:
        for b in self.bills:
            if b.id == bill_id:
                return b
        return None


class CreditAllocationEngine:
    """
    Allocate a vendor credit across outstanding bills.

    Contract:
        Pure functions over frozen records.  No I/O, no clock.
    Guarantees:
        - Ceiling per edit: ``min(bill.balance_due, available_credit)`` where
          ``available_credit`` is recomputed from the proposal on every call.
        - Commit re-validates the proposal against the bills it receives, so
          a proposal built on stale data is refused as a whole.
        - Identical inputs always produce an identical result.
    Non-goals:
        - Does not choose bills automatically; the caller sets amounts.
        - Does not serialize concurrent commits; see the service layer.
    """

    def propose_candidate_bills(
        self,
        vendor_id: str,
        bills: Sequence[Bill],
    ) -> CandidateBillSet:
        """
        Select the vendor's bills that can receive credit, preserving order.

        An empty selection carries a NoEligibleBillsError as ``notice``
        instead of raising it.
        """
        eligible = tuple(b for b in bills if _is_eligible(b, vendor_id))
        logger.info("candidate_bills_selected", extra={
            "vendor_id": vendor_id,
            "bill_count": len(bills),
            "eligible_count": len(eligible),
        })
        if not eligible:
            return CandidateBillSet(
                vendor_id=vendor_id,
                bills=(),
                notice=NoEligibleBillsError(vendor_id),
            )
        return CandidateBillSet(vendor_id=vendor_id, bills=eligible)

    def start_proposal(self, credit: VendorCredit) -> AllocationProposal:
        """Empty proposal for an allocatable credit."""
        ensure_credit_allocatable(credit)
        return AllocationProposal(credit_id=credit.id)

    def set_proposed_amount(
        self,
        proposal: AllocationProposal,
        bill_id: str,
        raw_amount: object,
        credit: VendorCredit,
        bills: Sequence[Bill],
    ) -> ProposalEdit:
        """
        Apply one interactive edit to a proposal.

        Args:
            proposal: Current proposal for ``credit``.
            bill_id: Bill being edited.
            raw_amount: Raw user input (str, number or Decimal).
            credit: The credit being allocated.
            bills: Bills currently known for the vendor.

        Returns:
            ProposalEdit -- accepted with the new proposal, or rejected with
            the previous proposal and a ValidationRejected explaining why.
        """
        ensure_credit_allocatable(credit)
        if proposal.credit_id != credit.id:
            raise ProposalCreditMismatchError(proposal.credit_id, credit.id)

        amount = parse_amount(raw_amount)
        if amount is None:
            return self._reject(proposal, bill_id, raw_amount, REASON_INVALID_AMOUNT)

        bill = next((b for b in bills if b.id == bill_id), None)
        if bill is None:
            return self._reject(proposal, bill_id, raw_amount, REASON_UNKNOWN_BILL)
        if not _is_eligible(bill, credit.vendor_id):
            return self._reject(proposal, bill_id, raw_amount, REASON_NOT_ELIGIBLE)

        other_total = sum_amounts(a for b, a in proposal.entries if b != bill_id)
        available_credit = credit.balance - other_total
        ceiling = min(bill.balance_due, available_credit)

        if amount > ceiling:
            return self._reject(
                proposal, bill_id, raw_amount, REASON_EXCEEDS_CEILING, ceiling,
            )

        logger.debug("proposal_amount_accepted", extra={
            "credit_id": credit.id,
            "bill_id": bill_id,
            "amount": str(amount),
            "ceiling": str(ceiling),
        })
        return ProposalEdit(proposal=proposal.with_amount(bill_id, amount), accepted=True)

    def _reject(
        self,
        proposal: AllocationProposal,
        bill_id: str,
        raw_amount: object,
        reason: str,
        ceiling: Decimal | None = None,
    ) -> ProposalEdit:
        logger.info("proposal_amount_rejected", extra={
            "credit_id": proposal.credit_id,
            "bill_id": bill_id,
            "raw_amount": str(raw_amount),
            "reason": reason,
            "ceiling": str(ceiling) if ceiling is not None else None,
        })
        return ProposalEdit(
            proposal=proposal,
            accepted=False,
            rejection=ValidationRejected(bill_id, raw_amount, reason, ceiling),
        )

    def total_proposed(self, proposal: AllocationProposal) -> Decimal:
        return proposal.total

    def remaining_credit(
        self,
        proposal: AllocationProposal,
        credit_balance: Decimal,
    ) -> Decimal:
        """Credit left after the proposal: ``credit_balance - total_proposed``."""
        return credit_balance - proposal.total

    def resolve_applied_date(
        self,
        credit: VendorCredit,
        auto_date: bool,
        today: date,
    ) -> date:
        return resolve_applied_date(credit, auto_date, today)

    @traced_engine(
        "credit_allocation", "1.0",
        fingerprint_fields=("credit", "proposal", "applied_date"),
    )
    def commit_allocation(
        self,
        credit: VendorCredit,
        proposal: AllocationProposal,
        bills: Sequence[Bill],
        applied_date: date,
    ) -> AllocationCommitResult:
        """
        Apply the proposal to the credit and the bills, all or nothing.

        Args:
            credit: The credit being applied.
            proposal: Proposal built for ``credit``.
            bills: Current bills; every proposed bill must be present.
            applied_date: Date stamped on each AppliedCredit.

        Returns:
            AllocationCommitResult with the updated credit and bills.

        Raises:
            EmptyAllocationError: nothing positive is proposed.
            AllocationCommitError: the proposal no longer fits; nothing applied.
        """
        ensure_credit_allocatable(credit)
        if proposal.credit_id != credit.id:
            raise ProposalCreditMismatchError(proposal.credit_id, credit.id)

        entries = proposal.positive_entries
        total = sum_amounts(amount for _, amount in entries)
        if total == ZERO:
            logger.warning("allocation_empty", extra={"credit_id": credit.id})
            raise EmptyAllocationError(credit.id)

        logger.info("allocation_commit_started", extra={
            "credit_id": credit.id,
            "vendor_id": credit.vendor_id,
            "bill_count": len(entries),
            "total": str(total),
            "credit_balance": str(credit.balance),
        })

        by_id = {b.id: b for b in bills}
        failures: dict[str, str] = {}
        for bill_id, amount in entries:
            bill = by_id.get(bill_id)
            if bill is None:
                failures[bill_id] = "bill not found"
            elif bill.vendor_id != credit.vendor_id:
                failures[bill_id] = f"bill belongs to vendor {bill.vendor_id}"
            elif not bill.accepts_credit:
                failures[bill_id] = f"bill is {bill.status.value} with balance due {bill.balance_due}"
            elif amount > bill.balance_due:
                failures[bill_id] = f"amount {amount} exceeds balance due {bill.balance_due}"
        if total > credit.balance:
            failures[credit.id] = f"total {total} exceeds credit balance {credit.balance}"

        if failures:
            logger.warning("allocation_commit_rejected", extra={
                "credit_id": credit.id,
                "failures": failures,
            })
            raise AllocationCommitError(credit.id, failures)

        updated_bills: list[Bill] = []
        applications: list[BillApplication] = []
        for bill_id, amount in entries:
            bill = by_id[bill_id]
            new_due = max(bill.balance_due - amount, ZERO)
            new_status = BillStatus.PAID if rounds_to_zero(new_due) else bill.status
            applied = AppliedCredit(
                credit_id=credit.id,
                credit_number=credit.credit_number,
                amount=amount,
                applied_date=applied_date,
            )
            updated_bills.append(replace(
                bill,
                balance_due=new_due,
                status=new_status,
                credits_applied=bill.credits_applied + (applied,),
            ))
            applications.append(BillApplication(
                bill_id=bill.id,
                bill_number=bill.bill_number,
                amount=amount,
                balance_due_before=bill.balance_due,
                balance_due_after=new_due,
                status_after=new_status,
            ))

        new_balance = credit.balance - total
        new_status = (
            VendorCreditStatus.CLOSED if rounds_to_zero(new_balance) else credit.status
        )
        updated_credit = replace(credit, balance=new_balance, status=new_status)

        logger.info("allocation_committed", extra={
            "credit_id": credit.id,
            "total_applied": str(total),
            "new_balance": str(new_balance),
            "credit_status": new_status.value,
            "bills_paid": [a.bill_id for a in applications if a.status_after == BillStatus.PAID],
        })

        return AllocationCommitResult(
            credit=updated_credit,
            bills=tuple(updated_bills),
            applications=tuple(applications),
            total_applied=total,
            applied_date=applied_date,
        )
