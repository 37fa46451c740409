"""
Typed Exception Hierarchy for the Vendor Credit Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the credit engines (a presentation layer, a persistence layer)
must tell three kinds of outcome apart without parsing messages:

  - a rejected interactive edit (recovered locally, input not accepted)
  - a failed commit (surfaced to the user, nothing applied)
  - a precondition violation on the credit (voided, closed, refunded)

Every exception therefore has:
  1. its own class (catch by type, not message)
  2. a ``code`` class attribute (machine-readable, API-safe)
  3. structured attributes carrying the context

Example:
    try:
        result = engine.commit_allocation(credit, proposal, bills, today)
    except CreditStateError as e:
        api_response(code=e.code, credit=e.credit_id)
    except AllocationError as e:
        api_response(code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CreditKernelError (base)
    |
    +-- AllocationError
    |   +-- ValidationRejected
    |   +-- EmptyAllocationError
    |   +-- AllocationCommitError
    |   +-- NoEligibleBillsError
    |   +-- ProposalCreditMismatchError
    |
    +-- CreditStateError
    |   +-- CreditVoidedError
    |   +-- CreditClosedError
    |   +-- CreditRefundedError
    |   +-- CreditNotOpenError
    |   +-- InvalidStatusTransitionError
    |   +-- StaleCreditError
    |
    +-- RefundError
        +-- InvalidRefundAmountError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                       | When
------------|----------------------------|-----------------------------------------
Allocation  | VALIDATION_REJECTED        | Edit outside [0, ceiling]; reported only
            | EMPTY_ALLOCATION           | Commit with nothing proposed
            | ALLOCATION_COMMIT_FAILED   | Stale/invalid proposal at commit time
            | NO_ELIGIBLE_BILLS          | Vendor has no open bills (informational)
            | PROPOSAL_CREDIT_MISMATCH   | Proposal built for another credit
------------|----------------------------|-----------------------------------------
State       | CREDIT_VOIDED              | Credit is VOID
            | CREDIT_CLOSED              | Credit is CLOSED
            | CREDIT_REFUNDED            | Credit is REFUNDED
            | CREDIT_NOT_OPEN            | Credit is DRAFT / PENDING_APPROVAL
            | INVALID_STATUS_TRANSITION  | No workflow transition for the action
            | STALE_CREDIT               | Balance differs from the last commit
------------|----------------------------|-----------------------------------------
Refund      | INVALID_REFUND_AMOUNT      | Amount not in (0, balance]

None of these errors is fatal to the host process, and none is raised after
a partial update: every engine builds its full result before returning.
"""

from __future__ import annotations

from decimal import Decimal


class CreditKernelError(Exception):
    """
    Base exception for all vendor credit kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "CREDIT_KERNEL_ERROR"


# Allocation exceptions


class AllocationError(CreditKernelError):
    """Base exception for credit-to-bill allocation errors."""

    code: str = "ALLOCATION_ERROR"


class ValidationRejected(AllocationError):
    """
    A proposed amount fell outside the allowed range for a bill.

    Never raised by the allocation engine. It is carried inside
    ``ProposalEdit.rejection`` so the caller can re-render the previous
    value without treating the edit as a failure.
    """

    code: str = "VALIDATION_REJECTED"

    def __init__(
        self,
        bill_id: str,
        raw_amount: object,
        reason: str,
        ceiling: Decimal | None = None,
    ):
        self.bill_id = bill_id
        self.raw_amount = raw_amount
        self.reason = reason
        self.ceiling = ceiling
        detail = f" (ceiling {ceiling})" if ceiling is not None else ""
        super().__init__(
            f"Amount {raw_amount!r} rejected for bill {bill_id}: {reason}{detail}"
        )


class EmptyAllocationError(AllocationError):
    """Commit requested with a proposal that applies nothing."""

    code: str = "EMPTY_ALLOCATION"

    def __init__(self, credit_id: str):
        self.credit_id = credit_id
        super().__init__(f"No credits to apply for vendor credit {credit_id}")


class AllocationCommitError(AllocationError):
    """
    The proposal could not be applied as a whole.

    Raised once for the whole commit, listing every offending bill, so a
    caller never sees a partially applied allocation.
    """

    code: str = "ALLOCATION_COMMIT_FAILED"

    def __init__(self, credit_id: str, failures: dict[str, str]):
        self.credit_id = credit_id
        self.failures = dict(failures)
        summary = "; ".join(f"{k}: {v}" for k, v in sorted(self.failures.items()))
        super().__init__(
            f"Allocation for vendor credit {credit_id} rejected: {summary}"
        )


class NoEligibleBillsError(AllocationError):
    """
    The vendor has no bills that can receive credit.

    Informational: returned as ``CandidateBillSet.notice``, not raised.
    """

    code: str = "NO_ELIGIBLE_BILLS"

    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(f"No eligible bills for vendor {vendor_id}")


class ProposalCreditMismatchError(AllocationError):
    """An allocation proposal was used against a different credit."""

    code: str = "PROPOSAL_CREDIT_MISMATCH"

    def __init__(self, proposal_credit_id: str, credit_id: str):
        self.proposal_credit_id = proposal_credit_id
        self.credit_id = credit_id
        super().__init__(
            f"Proposal belongs to credit {proposal_credit_id}, not {credit_id}"
        )


# Credit state exceptions


class CreditStateError(CreditKernelError):
    """Base exception for operations not permitted in the credit's status."""

    code: str = "CREDIT_STATE_ERROR"


class CreditVoidedError(CreditStateError):
    """The credit has been voided; its balance is frozen."""

    code: str = "CREDIT_VOIDED"

    def __init__(self, credit_id: str):
        self.credit_id = credit_id
        super().__init__(f"Vendor credit {credit_id} is void")


class CreditClosedError(CreditStateError):
    """The credit is closed; nothing remains to apply."""

    code: str = "CREDIT_CLOSED"

    def __init__(self, credit_id: str):
        self.credit_id = credit_id
        super().__init__(f"Vendor credit {credit_id} is closed")


class CreditRefundedError(CreditStateError):
    """The credit was refunded outside the bill-allocation path."""

    code: str = "CREDIT_REFUNDED"

    def __init__(self, credit_id: str):
        self.credit_id = credit_id
        super().__init__(f"Vendor credit {credit_id} has been refunded")


class CreditNotOpenError(CreditStateError):
    """The credit has not been issued yet."""

    code: str = "CREDIT_NOT_OPEN"

    def __init__(self, credit_id: str, status: str):
        self.credit_id = credit_id
        self.status = status
        super().__init__(f"Vendor credit {credit_id} is {status}, not OPEN")


class InvalidStatusTransitionError(CreditStateError):
    """No workflow transition exists for the requested action."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, credit_id: str, status: str, action: str, reason: str = ""):
        self.credit_id = credit_id
        self.status = status
        self.action = action
        self.reason = reason
        message = f"Cannot {action} vendor credit {credit_id} in status {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StaleCreditError(CreditStateError):
    """
    The caller's copy of a credit is older than the last committed one.

    Raised by ``VendorCreditService`` when the balance it was handed differs
    from the balance it last committed for the same credit.
    """

    code: str = "STALE_CREDIT"

    def __init__(self, credit_id: str, expected: Decimal, observed: Decimal):
        self.credit_id = credit_id
        self.expected = expected
        self.observed = observed
        super().__init__(
            f"Vendor credit {credit_id} is stale: balance {observed}, "
            f"last committed {expected}"
        )


# Refund exceptions


class RefundError(CreditKernelError):
    """Base exception for refund errors."""

    code: str = "REFUND_ERROR"


class InvalidRefundAmountError(RefundError):
    """Refund amount is missing, non-positive or above the credit balance."""

    code: str = "INVALID_REFUND_AMOUNT"

    def __init__(self, credit_id: str, raw_amount: object, balance: Decimal):
        self.credit_id = credit_id
        self.raw_amount = raw_amount
        self.balance = balance
        super().__init__(
            f"Invalid refund amount {raw_amount!r} for vendor credit {credit_id} "
            f"(balance {balance})"
        )
