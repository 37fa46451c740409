"""
Vendor Credit Workflows (``credit_modules.vendor_credits.workflows``).

Responsibility
--------------
Declares the state-machine definition for the vendor credit lifecycle.
Manual actions (submit, approve, reject, issue, void) are resolved against
it by ``VendorCreditService.transition``.  The guarded ``apply_to_bills``
and ``refund`` transitions document the moves the engines make on their
own: CLOSED and REFUNDED are decided by ``CreditAllocationEngine`` and
``CreditRefundCalculator`` from the rounded balance, nowhere else.

Architecture position
---------------------
**Modules layer** -- declarative workflow definitions.  Imports canonical
Guard, Transition, Workflow from ``credit_kernel.domain.workflow``.
Consumed by ``VendorCreditService``.

Invariants enforced
-------------------
* States are the lower-case names of ``VendorCreditStatus``.
* closed, void and refunded are terminal.

Audit relevance
---------------
Workflow definitions logged at module-load time with state counts and
transition counts.
"""

from credit_kernel.domain.documents import VendorCreditStatus
from credit_kernel.domain.workflow import Guard, Transition, Workflow
from credit_kernel.logging_config import get_logger

logger = get_logger("modules.vendor_credits.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

BALANCE_EXHAUSTED = Guard(
    name="balance_exhausted",
    description="Credit balance rounds to 0.00 after the operation",
)


# -----------------------------------------------------------------------------
# Vendor Credit Workflow
# -----------------------------------------------------------------------------

VENDOR_CREDIT_WORKFLOW = Workflow(
    name="vendor_credit",
    description="Vendor credit note lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending_approval",
        "open",
        "closed",
        "void",
        "refunded",
    ),
    terminal_states=("closed", "void", "refunded"),
    transitions=(
        Transition("draft", "pending_approval", action="submit"),
        Transition("draft", "open", action="issue"),
        Transition("draft", "void", action="void"),
        Transition("pending_approval", "open", action="approve"),
        Transition("pending_approval", "draft", action="reject"),
        Transition("pending_approval", "void", action="void"),
        Transition("open", "closed", action="apply_to_bills", guard=BALANCE_EXHAUSTED, posts_entry=True),
        Transition("open", "refunded", action="refund", guard=BALANCE_EXHAUSTED),
        Transition("open", "void", action="void"),
    ),
)

logger.info(
    "vendor_credit_workflow_registered",
    extra={
        "workflow_name": VENDOR_CREDIT_WORKFLOW.name,
        "state_count": len(VENDOR_CREDIT_WORKFLOW.states),
        "transition_count": len(VENDOR_CREDIT_WORKFLOW.transitions),
        "initial_state": VENDOR_CREDIT_WORKFLOW.initial_state,
    },
)

# Actions callers may request through VendorCreditService.transition();
# apply_to_bills and refund go through their own operations.
MANUAL_ACTIONS = frozenset({"submit", "approve", "reject", "issue", "void"})


def state_of(status: VendorCreditStatus) -> str:
    """Workflow state name for a credit status."""
    return status.value.lower()


def status_of(state: str) -> VendorCreditStatus:
    """Credit status for a workflow state name."""
    return VendorCreditStatus(state.upper())
