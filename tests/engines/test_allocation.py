"""
Tests for the Credit Allocation Engine.

Covers:
- Candidate bill selection
- Interactive proposal edits and their ceilings
- Commit arithmetic and status transitions
- Credit preconditions (void, closed, refunded, not yet open)
- Stale proposals and all-or-nothing commits
- Applied-date policy
"""

import logging
from datetime import date
from decimal import Decimal

import pytest

from credit_engines.allocation import (
    REASON_EXCEEDS_CEILING,
    REASON_INVALID_AMOUNT,
    REASON_NOT_ELIGIBLE,
    REASON_UNKNOWN_BILL,
    AllocationProposal,
    CreditAllocationEngine,
    resolve_applied_date,
)
from credit_kernel.domain.documents import BillStatus, VendorCreditStatus
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
from tests.factories import (
    CREDIT_DATE,
    OTHER_VENDOR_ID,
    TODAY,
    VENDOR_ID,
    make_bill,
    make_credit,
)


class TestCandidateBills:
    """Tests for propose_candidate_bills."""

    def setup_method(self):
        self.engine = CreditAllocationEngine()

    def test_filters_closed_and_settled_bills(self):
        """Paid, void and zero-balance bills are excluded; order is kept."""
        bills = [
            make_bill("b1", "100"),
            make_bill("b2", "0", paid="50", status=BillStatus.PAID),
            make_bill("b3", "80", status=BillStatus.VOID),
            make_bill("b4", "0", paid="20"),
            make_bill("b5", "60", status=BillStatus.OVERDUE),
            make_bill("b6", "40", status=BillStatus.PARTIAL, paid="10"),
        ]

        result = self.engine.propose_candidate_bills(VENDOR_ID, bills)

        assert [b.id for b in result.bills] == ["b1", "b5", "b6"]
        assert result.notice is None
        assert not result.is_empty

    def test_other_vendor_bills_excluded(self):
        bills = [make_bill("b1", "100", vendor_id=OTHER_VENDOR_ID)]

        result = self.engine.propose_candidate_bills(VENDOR_ID, bills)

        assert result.bills == ()

    def test_empty_result_carries_notice(self):
        """No eligible bills is reported, not raised."""
        result = self.engine.propose_candidate_bills(VENDOR_ID, [])

        assert result.is_empty
        assert isinstance(result.notice, NoEligibleBillsError)
        assert result.notice.code == "NO_ELIGIBLE_BILLS"
        assert result.notice.vendor_id == VENDOR_ID


class TestProposalEdits:
    """Tests for set_proposed_amount."""

    def setup_method(self):
        self.engine = CreditAllocationEngine()

    def test_worked_example(self, credit, bills):
        """A=300 accepted, B=250 rejected (ceiling 200), B=200 accepted."""
        proposal = self.engine.start_proposal(credit)

        edit_a = self.engine.set_proposed_amount(proposal, "bill-a", "300", credit, bills)
        assert edit_a.accepted
        assert edit_a.proposal.amount_for("bill-a") == Decimal("300")

        edit_b = self.engine.set_proposed_amount(edit_a.proposal, "bill-b", "250", credit, bills)
        assert not edit_b.accepted
        assert edit_b.proposal == edit_a.proposal
        assert edit_b.rejection.reason == REASON_EXCEEDS_CEILING
        assert edit_b.rejection.ceiling == Decimal("200")

        edit_b2 = self.engine.set_proposed_amount(edit_a.proposal, "bill-b", "200", credit, bills)
        assert edit_b2.accepted
        assert edit_b2.proposal.as_dict() == {
            "bill-a": Decimal("300"),
            "bill-b": Decimal("200"),
        }
        assert self.engine.total_proposed(edit_b2.proposal) == Decimal("500")
        assert self.engine.remaining_credit(edit_b2.proposal, credit.balance) == Decimal("0")

    def test_ceiling_is_bill_balance_due(self, credit, bills):
        """A bill cannot receive more than its balance due."""
        proposal = self.engine.start_proposal(credit)

        edit = self.engine.set_proposed_amount(proposal, "bill-a", "300.01", credit, bills)

        assert not edit.accepted
        assert edit.rejection.ceiling == Decimal("300.00")

    def test_replacing_an_entry_frees_its_credit(self, credit, bills):
        """Available credit excludes only OTHER bills, so an entry can be raised."""
        proposal = self.engine.start_proposal(credit)
        proposal = self.engine.set_proposed_amount(proposal, "bill-b", "400", credit, bills).proposal
        proposal = self.engine.set_proposed_amount(proposal, "bill-a", "100", credit, bills).proposal

        edit = self.engine.set_proposed_amount(proposal, "bill-b", "350", credit, bills)

        assert edit.accepted
        assert edit.proposal.amount_for("bill-b") == Decimal("350")
        # Entry order follows first touch
        assert [b for b, _ in edit.proposal.entries] == ["bill-b", "bill-a"]

    def test_zero_is_accepted(self, credit, bills):
        proposal = self.engine.start_proposal(credit)
        proposal = self.engine.set_proposed_amount(proposal, "bill-a", "300", credit, bills).proposal

        edit = self.engine.set_proposed_amount(proposal, "bill-a", "0", credit, bills)

        assert edit.accepted
        assert edit.proposal.total == Decimal("0")

    @pytest.mark.parametrize("raw", ["", "abc", "-5", "NaN", "Infinity", None, True])
    def test_invalid_input_rejected(self, credit, bills, raw):
        """Unparseable, negative or non-finite input leaves the proposal unchanged."""
        proposal = self.engine.start_proposal(credit)

        edit = self.engine.set_proposed_amount(proposal, "bill-a", raw, credit, bills)

        assert not edit.accepted
        assert edit.proposal is proposal
        assert isinstance(edit.rejection, ValidationRejected)
        assert edit.rejection.reason == REASON_INVALID_AMOUNT
        assert edit.rejection.code == "VALIDATION_REJECTED"

    def test_unknown_bill_rejected(self, credit, bills):
        proposal = self.engine.start_proposal(credit)

        edit = self.engine.set_proposed_amount(proposal, "bill-z", "10", credit, bills)

        assert edit.rejection.reason == REASON_UNKNOWN_BILL

    def test_ineligible_bill_rejected(self, credit):
        bills = [
            make_bill("paid", "0", paid="100", status=BillStatus.PAID),
            make_bill("foreign", "100", vendor_id=OTHER_VENDOR_ID),
        ]
        proposal = self.engine.start_proposal(credit)

        for bill_id in ("paid", "foreign"):
            edit = self.engine.set_proposed_amount(proposal, bill_id, "10", credit, bills)
            assert edit.rejection.reason == REASON_NOT_ELIGIBLE

    def test_numeric_input_accepted(self, credit, bills):
        """Numbers and Decimals are parsed like strings."""
        proposal = self.engine.start_proposal(credit)

        edit = self.engine.set_proposed_amount(proposal, "bill-a", 120.5, credit, bills)

        assert edit.accepted
        assert edit.proposal.amount_for("bill-a") == Decimal("120.5")

    def test_proposal_for_other_credit_raises(self, credit, bills):
        other = AllocationProposal(credit_id="vc-other")

        with pytest.raises(ProposalCreditMismatchError) as exc_info:
            self.engine.set_proposed_amount(other, "bill-a", "10", credit, bills)

        assert exc_info.value.proposal_credit_id == "vc-other"
        assert exc_info.value.credit_id == credit.id

    def test_rejection_is_logged(self, credit, bills, caplog):
        caplog.set_level(logging.INFO, logger="credit_kernel")
        proposal = self.engine.start_proposal(credit)

        self.engine.set_proposed_amount(proposal, "bill-a", "999", credit, bills)

        records = [r for r in caplog.records if r.getMessage() == "proposal_amount_rejected"]
        assert len(records) == 1
        assert records[0].reason == REASON_EXCEEDS_CEILING


class TestCreditPreconditions:
    """Credits that are not OPEN cannot be allocated."""

    def setup_method(self):
        self.engine = CreditAllocationEngine()

    @pytest.mark.parametrize(
        "status, error",
        [
            (VendorCreditStatus.VOID, CreditVoidedError),
            (VendorCreditStatus.CLOSED, CreditClosedError),
            (VendorCreditStatus.REFUNDED, CreditRefundedError),
            (VendorCreditStatus.DRAFT, CreditNotOpenError),
            (VendorCreditStatus.PENDING_APPROVAL, CreditNotOpenError),
        ],
    )
    def test_start_proposal_raises(self, status, error):
        credit = make_credit(status=status)

        with pytest.raises(error):
            self.engine.start_proposal(credit)

    def test_void_credit_edit_raises_without_change(self, bills):
        """Any edit on a VOID credit raises and leaves the proposal untouched."""
        credit = make_credit(status=VendorCreditStatus.VOID)
        proposal = AllocationProposal(credit_id=credit.id)

        with pytest.raises(CreditVoidedError) as exc_info:
            self.engine.set_proposed_amount(proposal, "bill-a", "100", credit, bills)

        assert exc_info.value.code == "CREDIT_VOIDED"
        assert proposal.entries == ()

    def test_void_credit_commit_raises_without_change(self, bills):
        credit = make_credit(status=VendorCreditStatus.VOID)
        proposal = AllocationProposal(
            credit_id=credit.id, entries=(("bill-a", Decimal("100")),),
        )

        with pytest.raises(CreditVoidedError):
            self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert credit.balance == Decimal("500.00")
        assert bills[0].balance_due == Decimal("300.00")

    def test_not_open_error_carries_status(self):
        credit = make_credit(status=VendorCreditStatus.DRAFT)

        with pytest.raises(CreditNotOpenError) as exc_info:
            self.engine.start_proposal(credit)

        assert exc_info.value.status == "DRAFT"


class TestCommitAllocation:
    """Tests for commit_allocation."""

    def setup_method(self):
        self.engine = CreditAllocationEngine()

    def _proposal(self, credit, bills, **amounts):
        proposal = self.engine.start_proposal(credit)
        for bill_id, amount in amounts.items():
            edit = self.engine.set_proposed_amount(
                proposal, bill_id.replace("_", "-"), amount, credit, bills,
            )
            assert edit.accepted
            proposal = edit.proposal
        return proposal

    def test_worked_example_commit(self, credit, bills):
        """Balance 500 fully applied: credit CLOSED, A PAID, B partially covered."""
        proposal = self._proposal(credit, bills, bill_a="300", bill_b="200")

        result = self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert result.total_applied == Decimal("500")
        assert result.credit.balance == Decimal("0")
        assert result.credit.status == VendorCreditStatus.CLOSED

        bill_a = result.bill("bill-a")
        assert bill_a.balance_due == Decimal("0")
        assert bill_a.status == BillStatus.PAID
        bill_b = result.bill("bill-b")
        assert bill_b.balance_due == Decimal("200")
        assert bill_b.status == BillStatus.OPEN

    def test_applied_credit_records(self, credit, bills):
        proposal = self._proposal(credit, bills, bill_b="150")

        result = self.engine.commit_allocation(credit, proposal, bills, TODAY)

        bill_b = result.bill("bill-b")
        assert len(bill_b.credits_applied) == 1
        applied = bill_b.credits_applied[0]
        assert applied.credit_id == credit.id
        assert applied.credit_number == credit.credit_number
        assert applied.amount == Decimal("150")
        assert applied.applied_date == TODAY

        [application] = result.applications
        assert application.balance_due_before == Decimal("400.00")
        assert application.balance_due_after == Decimal("250.00")
        assert application.status_after == BillStatus.OPEN

    def test_partial_commit_keeps_credit_open(self, credit, bills):
        proposal = self._proposal(credit, bills, bill_a="100")

        result = self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert result.credit.balance == Decimal("400.00")
        assert result.credit.status == VendorCreditStatus.OPEN
        assert [b.id for b in result.bills] == ["bill-a"]

    def test_inputs_not_mutated(self, credit, bills):
        proposal = self._proposal(credit, bills, bill_a="300", bill_b="200")

        self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert credit.balance == Decimal("500.00")
        assert credit.status == VendorCreditStatus.OPEN
        assert bills[0].balance_due == Decimal("300.00")
        assert bills[0].credits_applied == ()

    def test_sub_cent_remainder_closes(self):
        """Status is decided on the rounded balance."""
        credit = make_credit(amount="100.004")
        bills = [make_bill("bill-a", "100.00")]
        proposal = AllocationProposal(credit.id, (("bill-a", Decimal("100.00")),))

        result = self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert result.credit.balance == Decimal("0.004")
        assert result.credit.status == VendorCreditStatus.CLOSED

    def test_idempotent_given_identical_inputs(self, credit, bills):
        proposal = self._proposal(credit, bills, bill_a="300", bill_b="200")

        first = self.engine.commit_allocation(credit, proposal, bills, TODAY)
        second = self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert first == second

    def test_empty_proposal_raises(self, credit, bills):
        proposal = self._proposal(credit, bills, bill_a="0")

        with pytest.raises(EmptyAllocationError) as exc_info:
            self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert exc_info.value.credit_id == credit.id

    def test_stale_bill_rejected_as_a_whole(self, credit, bills):
        """A bill paid down since the proposal was built fails the whole commit."""
        proposal = self._proposal(credit, bills, bill_a="300", bill_b="200")
        fresh_bills = [make_bill("bill-a", "250.00", paid="50.00"), bills[1]]

        with pytest.raises(AllocationCommitError) as exc_info:
            self.engine.commit_allocation(credit, proposal, fresh_bills, TODAY)

        assert set(exc_info.value.failures) == {"bill-a"}
        assert exc_info.value.code == "ALLOCATION_COMMIT_FAILED"

    def test_every_offending_bill_listed(self, credit):
        proposal = AllocationProposal(
            credit.id,
            (
                ("missing", Decimal("10")),
                ("foreign", Decimal("10")),
                ("paid", Decimal("10")),
            ),
        )
        bills = [
            make_bill("foreign", "100", vendor_id=OTHER_VENDOR_ID),
            make_bill("paid", "0", paid="100", status=BillStatus.PAID),
        ]

        with pytest.raises(AllocationCommitError) as exc_info:
            self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert set(exc_info.value.failures) == {"missing", "foreign", "paid"}

    def test_total_above_balance_rejected(self, bills):
        """A proposal built against a larger balance is refused."""
        credit = make_credit(balance="100.00")
        proposal = AllocationProposal(credit.id, (("bill-a", Decimal("300")),))

        with pytest.raises(AllocationCommitError) as exc_info:
            self.engine.commit_allocation(credit, proposal, bills, TODAY)

        assert credit.id in exc_info.value.failures

    def test_commit_for_other_credit_raises(self, credit, bills):
        proposal = AllocationProposal("vc-other", (("bill-a", Decimal("10")),))

        with pytest.raises(ProposalCreditMismatchError):
            self.engine.commit_allocation(credit, proposal, bills, TODAY)

    def test_commit_is_traced(self, credit, bills, caplog):
        caplog.set_level(logging.INFO, logger="credit_kernel")
        proposal = self._proposal(credit, bills, bill_a="300")

        self.engine.commit_allocation(credit, proposal, bills, TODAY)

        traces = [r for r in caplog.records if r.getMessage() == "CREDIT_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0].engine_name == "credit_allocation"
        assert traces[0].outcome == "success"
        assert len(traces[0].input_fingerprint) == 16


class TestAllocationProposal:
    """Tests for the proposal value object."""

    def test_duplicate_entries_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            AllocationProposal("vc-1", (("b", Decimal("1")), ("b", Decimal("2"))))

    def test_negative_entry_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            AllocationProposal("vc-1", (("b", Decimal("-1")),))

    def test_with_amount_returns_new_proposal(self):
        proposal = AllocationProposal("vc-1")

        updated = proposal.with_amount("b", Decimal("5"))

        assert proposal.entries == ()
        assert updated.amount_for("b") == Decimal("5")
        assert updated.amount_for("unknown") == Decimal("0")


class TestAppliedDate:
    """Tests for the applied-date policy."""

    def test_auto_date_uses_today(self, credit):
        assert resolve_applied_date(credit, True, TODAY) == TODAY

    def test_manual_uses_credit_date(self, credit):
        assert resolve_applied_date(credit, False, TODAY) == CREDIT_DATE

    def test_engine_method_matches_function(self, credit):
        engine = CreditAllocationEngine()
        assert engine.resolve_applied_date(credit, False, date(2030, 1, 1)) == CREDIT_DATE
