"""
Vendor Credit Module Service (``credit_modules.vendor_credits.service``).

Responsibility
--------------
Orchestrates vendor credit operations -- bill allocation, refunds, voids,
clones, status changes, GST and journal derivation -- by delegating pure
computation to ``credit_engines`` and lifecycle rules to
``VENDOR_CREDIT_WORKFLOW``.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``VendorCreditService`` is the sole public
entry point for vendor credit operations.  It composes the stateless
engines (``CreditAllocationEngine``, ``CreditRefundCalculator``,
``GstCalculator``, ``JournalDeriver``), an injectable ``Clock`` and the
module configuration.

Invariants enforced
-------------------
* Commits for the same credit or the same bill are serialized: the service
  holds one lock per entity id (acquired in sorted order) for the whole
  commit.
* Under those locks the caller's credit balance and bill balances must
  match the last ones this service committed; a stale copy is refused, so
  the same balance cannot be spent twice.
* Every status change goes through ``VENDOR_CREDIT_WORKFLOW``; an action
  with no transition from the current state raises
  ``InvalidStatusTransitionError``.
* Records are never mutated; every operation returns new records for the
  caller to store.

Failure modes
-------------
* Engine errors (``CreditStateError``, ``AllocationError``,
  ``RefundError``) propagate unchanged after a ``*_failed`` log event.
* Stale records: ``AllocationCommitError`` (reason ``stale_balance``) from
  ``apply_to_bills``, ``StaleCreditError`` from ``refund``.

Audit relevance
---------------
Structured log events emitted at operation start and completion for every
public method, carrying IDs, amounts and statuses, with ``credit_id`` and
``vendor_id`` bound into ``LogContext``.

Usage::

    service = VendorCreditService(clock=clock)
    proposal = service.start_allocation(credit)
    edit = service.edit_allocation(proposal, "bill-1", "300", credit, bills)
    result = service.apply_to_bills(credit, edit.proposal, bills)
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from credit_engines.allocation import (
    AllocationCommitResult,
    AllocationProposal,
    CandidateBillSet,
    CreditAllocationEngine,
    ProposalEdit,
)
from credit_engines.journal import JournalDeriver, JournalEntrySet
from credit_engines.refund import CreditRefundCalculator, RefundResult
from credit_engines.tax import GstCalculator, GstSplit
from credit_kernel.domain.clock import Clock, SystemClock
from credit_kernel.domain.documents import Bill, VendorCredit, VendorCreditStatus
from credit_kernel.domain.workflow import Transition
from credit_kernel.exceptions import (
    AllocationCommitError,
    CreditKernelError,
    InvalidStatusTransitionError,
    StaleCreditError,
)
from credit_kernel.logging_config import LogContext, get_logger
from credit_modules.vendor_credits.config import VendorCreditConfig
from credit_modules.vendor_credits.workflows import (
    MANUAL_ACTIONS,
    VENDOR_CREDIT_WORKFLOW,
    state_of,
    status_of,
)

logger = get_logger("modules.vendor_credits.service")

REASON_STALE_BALANCE = "stale_balance"


class EntityLocks:
    """
    Registry of per-entity locks.

    ``hold(keys)`` acquires the lock of every key in sorted order, so two
    commits touching overlapping entities cannot deadlock.  A lock lives
    only while some thread holds or waits for it.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        # key -> [lock, holders and waiters]
        self._locks: dict[str, list] = {}

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _checkout(self, key: str) -> threading.Lock:
        with self._registry_lock:
            slot = self._locks.get(key)
            if slot is None:
                slot = [threading.Lock(), 0]
                self._locks[key] = slot
            slot[1] += 1
            return slot[0]

    def _checkin(self, key: str) -> None:
        with self._registry_lock:
            slot = self._locks[key]
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        checked_out: list[str] = []
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                checked_out.append(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in reversed(checked_out):
                self._checkin(key)


class CommittedBalances:
    """
    Last balance committed through the service, per entity key.

    Read and written only while the entity's lock is held.  A caller whose
    record shows a different balance is working from a stale copy.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._balances: dict[str, Decimal] = {}

    def expected(self, key: str) -> Decimal | None:
        with self._lock:
            return self._balances.get(key)

    def stale(self, key: str, observed: Decimal) -> Decimal | None:
        """The committed balance when ``observed`` disagrees with it, else None."""
        expected = self.expected(key)
        if expected is not None and expected != observed:
            return expected
        return None

    def record(self, balances: dict[str, Decimal]) -> None:
        with self._lock:
            self._balances.update(balances)


class VendorCreditService:
    """
    Orchestrates vendor credit operations through the credit engines.

    Contract
    --------
    * Allocation, refund and lifecycle operations return new frozen records;
      the caller persists them.
    * ``apply_to_bills`` is all-or-nothing: it either returns a complete
      ``AllocationCommitResult`` or raises with nothing applied.

    Guarantees
    ----------
    * Clock is injectable for deterministic testing.
    * ``auto_date=None`` falls back to ``config.auto_date_applied``.

    Non-goals
    ---------
    * Does NOT load or store records.
    * Does NOT format amounts for display.
    """

    def __init__(
        self,
        config: VendorCreditConfig | None = None,
        clock: Clock | None = None,
    ):
        self._config = config or VendorCreditConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._locks = EntityLocks()
        self._committed = CommittedBalances()

        # Stateless engines
        self._allocation = CreditAllocationEngine()
        self._refunds = CreditRefundCalculator()
        self._gst = GstCalculator(self._config.build_brackets())
        self._journal = JournalDeriver(self._gst, self._config.journal_accounts)

    @property
    def config(self) -> VendorCreditConfig:
        return self._config

    # =========================================================================
    # Workflow
    # =========================================================================

    def _resolve_transition(self, credit: VendorCredit, action: str) -> Transition:
        """Find the transition for ``action`` out of the credit's state, or raise."""
        current = state_of(credit.status)
        transition = VENDOR_CREDIT_WORKFLOW.find_transition(current, action)
        if transition is None:
            logger.warning("vendor_credit_transition_rejected", extra={
                "credit_id": credit.id,
                "state": current,
                "action": action,
                "allowed_actions": list(VENDOR_CREDIT_WORKFLOW.actions_from(current)),
            })
            raise InvalidStatusTransitionError(credit.id, credit.status.value, action)
        return transition

    def transition(self, credit: VendorCredit, action: str) -> VendorCredit:
        """
        Move a credit along the workflow (submit, approve, reject, issue, void).

        Raises:
            InvalidStatusTransitionError: no such transition from the
                current state, or the action has its own operation.
        """
        with LogContext.bind_credit(credit):
            if action not in MANUAL_ACTIONS:
                raise InvalidStatusTransitionError(
                    credit.id, credit.status.value, action,
                    reason="use the dedicated operation",
                )
            transition = self._resolve_transition(credit, action)
            updated = replace(credit, status=status_of(transition.to_state))
            logger.info("vendor_credit_transitioned", extra={
                "credit_id": credit.id,
                "action": action,
                "from_state": transition.from_state,
                "to_state": transition.to_state,
            })
            return updated

    def void(self, credit: VendorCredit) -> VendorCredit:
        """Void a draft, pending or open credit.  The balance is frozen."""
        return self.transition(credit, "void")

    # =========================================================================
    # Allocation
    # =========================================================================

    def candidate_bills(self, vendor_id: str, bills: Sequence[Bill]) -> CandidateBillSet:
        with LogContext.bind(vendor_id=vendor_id):
            return self._allocation.propose_candidate_bills(vendor_id, bills)

    def start_allocation(self, credit: VendorCredit) -> AllocationProposal:
        with LogContext.bind_credit(credit):
            proposal = self._allocation.start_proposal(credit)
            logger.info("vendor_credit_allocation_started", extra={
                "credit_id": credit.id,
                "balance": str(credit.balance),
            })
            return proposal

    def edit_allocation(
        self,
        proposal: AllocationProposal,
        bill_id: str,
        raw_amount: object,
        credit: VendorCredit,
        bills: Sequence[Bill],
    ) -> ProposalEdit:
        with LogContext.bind_credit(credit, bill_id=bill_id):
            return self._allocation.set_proposed_amount(
                proposal, bill_id, raw_amount, credit, bills,
            )

    def remaining_credit(
        self,
        proposal: AllocationProposal,
        credit: VendorCredit,
    ) -> Decimal:
        return self._allocation.remaining_credit(proposal, credit.balance)

    def apply_to_bills(
        self,
        credit: VendorCredit,
        proposal: AllocationProposal,
        bills: Sequence[Bill],
        auto_date: bool | None = None,
    ) -> AllocationCommitResult:
        """
        Commit a proposal against the bills.

        Preconditions:
            - ``credit`` is OPEN and ``proposal`` was built for it.
        Postconditions:
            - Returns the updated credit (CLOSED when its balance is used up)
              and the updated bills (PAID when fully covered).
        Raises:
            CreditStateError, EmptyAllocationError.
            AllocationCommitError: invalid proposal, or a credit or bill
                balance older than the last one committed here.
        """
        if auto_date is None:
            auto_date = self._config.auto_date_applied

        with LogContext.bind_credit(credit):
            applied_date = self._allocation.resolve_applied_date(
                credit, auto_date, self._clock.today(),
            )
            logger.info("vendor_credit_apply_started", extra={
                "credit_id": credit.id,
                "total_proposed": str(proposal.total),
                "applied_date": applied_date.isoformat(),
                "auto_date": auto_date,
            })

            keys = [f"credit:{credit.id}"] + [
                f"bill:{bill_id}" for bill_id, _ in proposal.positive_entries
            ]
            with self._locks.hold(keys):
                try:
                    self._ensure_current(credit, proposal, bills)
                    result = self._allocation.commit_allocation(
                        credit, proposal, bills, applied_date,
                    )
                except CreditKernelError as exc:
                    logger.warning("vendor_credit_apply_failed", extra={
                        "credit_id": credit.id,
                        "error_code": exc.code,
                    })
                    raise
                committed = {f"credit:{credit.id}": result.credit.balance}
                committed.update(
                    (f"bill:{bill.id}", bill.balance_due) for bill in result.bills
                )
                self._committed.record(committed)

            logger.info("vendor_credit_apply_committed", extra={
                "credit_id": credit.id,
                "total_applied": str(result.total_applied),
                "new_balance": str(result.credit.balance),
                "credit_status": result.credit.status.value,
                "closed": result.credit.status == VendorCreditStatus.CLOSED,
                "bill_count": len(result.bills),
            })
            return result

    def _ensure_current(
        self,
        credit: VendorCredit,
        proposal: AllocationProposal,
        bills: Sequence[Bill],
    ) -> None:
        """Refuse a commit built on balances older than the last committed ones."""
        failures: dict[str, str] = {}
        if self._committed.stale(f"credit:{credit.id}", credit.balance) is not None:
            failures[credit.id] = REASON_STALE_BALANCE
        by_id = {bill.id: bill for bill in bills}
        for bill_id, _ in proposal.positive_entries:
            bill = by_id.get(bill_id)
            if bill is not None and self._committed.stale(
                f"bill:{bill_id}", bill.balance_due,
            ) is not None:
                failures[bill_id] = REASON_STALE_BALANCE
        if failures:
            logger.warning("vendor_credit_stale_commit_rejected", extra={
                "credit_id": credit.id,
                "stale_ids": sorted(failures),
            })
            raise AllocationCommitError(credit.id, failures)

    # =========================================================================
    # Refund / clone
    # =========================================================================

    def refund(
        self,
        credit: VendorCredit,
        raw_amount: object,
        reason: str = "",
    ) -> RefundResult:
        """
        Refund part or all of the balance.

        Raises:
            CreditStateError: credit is not OPEN.
            InvalidRefundAmountError: amount not in (0, balance].
            StaleCreditError: balance older than the last one committed here.
        """
        with LogContext.bind_credit(credit):
            logger.info("vendor_credit_refund_started", extra={
                "credit_id": credit.id,
                "raw_amount": str(raw_amount),
                "balance": str(credit.balance),
            })
            key = f"credit:{credit.id}"
            with self._locks.hold([key]):
                try:
                    expected = self._committed.stale(key, credit.balance)
                    if expected is not None:
                        raise StaleCreditError(credit.id, expected, credit.balance)
                    result = self._refunds.refund(credit, raw_amount, reason=reason)
                except CreditKernelError as exc:
                    logger.warning("vendor_credit_refund_failed", extra={
                        "credit_id": credit.id,
                        "error_code": exc.code,
                    })
                    raise
                self._committed.record({key: result.credit.balance})

            logger.info("vendor_credit_refund_committed", extra={
                "credit_id": credit.id,
                "amount": str(result.amount),
                "new_balance": str(result.credit.balance),
                "fully_refunded": result.is_full_refund,
            })
            return result

    def clone(
        self,
        credit: VendorCredit,
        credit_number: str,
        credit_id: str | None = None,
    ) -> VendorCredit:
        """
        Copy a credit into a new DRAFT credit dated today.

        Items, tax fields and descriptive fields are copied; the new credit
        gets a fresh id and its full amount as balance.
        """
        with LogContext.bind_credit(credit):
            new_id = credit_id or str(uuid4())
            cloned = replace(
                credit,
                id=new_id,
                credit_number=credit_number,
                credit_date=self._clock.today(),
                balance=credit.amount,
                status=self._config.clone_status,
            )
            logger.info("vendor_credit_cloned", extra={
                "source_credit_id": credit.id,
                "new_credit_id": new_id,
                "credit_number": credit_number,
            })
            return cloned

    # =========================================================================
    # Ledger
    # =========================================================================

    def tax_summary(self, credit: VendorCredit) -> GstSplit:
        with LogContext.bind_credit(credit):
            return self._gst.compute_tax(credit.items)

    def journal(self, credit: VendorCredit) -> JournalEntrySet:
        with LogContext.bind_credit(credit):
            return self._journal.build_journal_entries(credit)
