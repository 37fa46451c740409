"""
Module: credit_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for
    credit_modules.vendor_credits.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import credit_kernel (and sibling engine modules).
    MUST NOT import credit_modules or credit_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in as explicit parameters by the service layer.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Commits and refunds are traced via ``@traced_engine`` (see
    ``credit_engines.tracer``), emitting CREDIT_ENGINE_TRACE log records
    with engine name, version, input fingerprint and duration.

Usage:
    from credit_engines import CreditAllocationEngine, GstCalculator, JournalDeriver
"""

from credit_kernel.logging_config import get_logger

logger = get_logger("engines")

from credit_engines.allocation import (
    AllocationCommitResult,
    AllocationProposal,
    BillApplication,
    CandidateBillSet,
    CreditAllocationEngine,
    ProposalEdit,
    ensure_credit_allocatable,
    resolve_applied_date,
)
from credit_engines.journal import (
    JournalAccounts,
    JournalDeriver,
    JournalEntry,
    JournalEntrySet,
)
from credit_engines.refund import CreditRefundCalculator, RefundResult
from credit_engines.tax import (
    DEFAULT_GST_BRACKETS,
    GstBracket,
    GstCalculator,
    GstSplit,
)
from credit_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Allocation
    "AllocationCommitResult",
    "AllocationProposal",
    "BillApplication",
    "CandidateBillSet",
    "CreditAllocationEngine",
    "ProposalEdit",
    "ensure_credit_allocatable",
    "resolve_applied_date",
    # Journal
    "JournalAccounts",
    "JournalDeriver",
    "JournalEntry",
    "JournalEntrySet",
    # Refund
    "CreditRefundCalculator",
    "RefundResult",
    # Tax
    "DEFAULT_GST_BRACKETS",
    "GstBracket",
    "GstCalculator",
    "GstSplit",
    # Tracer
    "compute_input_fingerprint",
    "traced_engine",
]
