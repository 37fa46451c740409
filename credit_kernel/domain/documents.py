"""
Vendor credit documents (``credit_kernel.domain.documents``).

Responsibility
--------------
Frozen records for the nouns the credit engines work on: vendor credits
and their line items, bills, and the applied-credit records a bill carries.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions.  Records are supplied by
an external store and flow into the engines; engines return new records
built with ``dataclasses.replace`` and never mutate their inputs.

Invariants enforced
-------------------
* All monetary fields are ``Decimal``.  Raw ``str``/``int``/``float``
  values are coerced in ``__post_init__``.
* ``VendorCredit``: ``0 <= balance <= amount``.
* ``Bill``: ``balance_due >= 0`` and
  ``balance_due == total - amount_paid - sum(credits_applied)``.
* ``VendorCreditItem``: quantity, rate and discount are non-negative.

Failure modes
-------------
* ``ValueError`` from ``__post_init__`` when an invariant is violated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from credit_kernel.domain.values import ZERO, sum_amounts, to_decimal
from credit_kernel.logging_config import get_logger

logger = get_logger("domain.documents")


class VendorCreditStatus(str, Enum):
    """Vendor credit lifecycle states.  Must align with ``VENDOR_CREDIT_WORKFLOW``."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    VOID = "VOID"
    REFUNDED = "REFUNDED"


class BillStatus(str, Enum):
    """Bill states as reported by the bill store."""

    DRAFT = "DRAFT"
    OPEN = "OPEN"
    OVERDUE = "OVERDUE"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    VOID = "VOID"


# Bills in these states never receive credit.
CLOSED_BILL_STATUSES = frozenset({BillStatus.PAID, BillStatus.VOID})


def _coerce(obj: object, name: str) -> None:
    value = getattr(obj, name)
    if not isinstance(value, Decimal):
        object.__setattr__(obj, name, to_decimal(value))


def _coerce_optional(obj: object, name: str) -> None:
    if getattr(obj, name) is not None:
        _coerce(obj, name)


@dataclass(frozen=True)
class VendorCreditItem:
    """A line item on a vendor credit.

    ``amount`` is derived: ``quantity * rate - discount``.
    """

    quantity: Decimal = Decimal("1")
    rate: Decimal = ZERO
    tax: str | None = None  # GST bracket tag, e.g. "gst_18"
    discount: Decimal = ZERO
    item_id: str | None = None
    item_name: str = ""
    description: str = ""
    account: str | None = None
    hsn_sac: str | None = None

    def __post_init__(self) -> None:
        for name in ("quantity", "rate", "discount"):
            _coerce(self, name)
            if getattr(self, name) < ZERO:
                raise ValueError(f"{name} cannot be negative")

    @property
    def base_amount(self) -> Decimal:
        """Quantity times rate, before any item discount."""
        return self.quantity * self.rate

    @property
    def amount(self) -> Decimal:
        return self.base_amount - self.discount


@dataclass(frozen=True)
class VendorCredit:
    """A credit note issued by a vendor.

    Contract: frozen; the allocation engine only ever produces copies with a
    new ``balance`` and ``status``.
    Guarantees: ``0 <= balance <= amount``.
    Non-goals: does not reconcile ``amount`` against items and taxes; the
    journal deriver reports such mismatches instead.
    """

    id: str
    vendor_id: str
    credit_number: str
    credit_date: date
    amount: Decimal
    balance: Decimal
    status: VendorCreditStatus = VendorCreditStatus.OPEN
    items: tuple[VendorCreditItem, ...] = field(default_factory=tuple)
    sub_total: Decimal = ZERO
    discount_amount: Decimal | None = None
    cgst: Decimal | None = None
    sgst: Decimal | None = None
    igst: Decimal | None = None
    tds_tcs_amount: Decimal | None = None
    adjustment: Decimal | None = None
    vendor_name: str = ""
    reference_number: str | None = None
    order_number: str | None = None
    subject: str | None = None
    reverse_charge: bool = False
    notes: str | None = None

    def __post_init__(self) -> None:
        for name in ("amount", "balance", "sub_total"):
            _coerce(self, name)
        for name in ("discount_amount", "cgst", "sgst", "igst", "tds_tcs_amount", "adjustment"):
            _coerce_optional(self, name)
        if not isinstance(self.status, VendorCreditStatus):
            object.__setattr__(self, "status", VendorCreditStatus(self.status))
        object.__setattr__(self, "items", tuple(self.items))

        if self.amount < ZERO:
            raise ValueError("amount cannot be negative")
        # INVARIANT: 0 <= balance <= amount
        if self.balance < ZERO or self.balance > self.amount:
            logger.warning(
                "vendor_credit_balance_out_of_range",
                extra={
                    "credit_id": self.id,
                    "amount": str(self.amount),
                    "balance": str(self.balance),
                },
            )
            raise ValueError(
                f"balance ({self.balance}) must be between 0 and amount ({self.amount})"
            )

    @property
    def applied_amount(self) -> Decimal:
        """Portion of the credit already used (applied or refunded)."""
        return self.amount - self.balance


@dataclass(frozen=True)
class AppliedCredit:
    """Record of a vendor credit applied to a bill."""

    credit_id: str
    credit_number: str
    amount: Decimal
    applied_date: date

    def __post_init__(self) -> None:
        _coerce(self, "amount")
        if self.amount <= ZERO:
            raise ValueError("applied amount must be positive")


@dataclass(frozen=True)
class Bill:
    """A vendor bill that credits can be applied to.

    Guarantees: ``balance_due == total - amount_paid - credits applied``
    and ``balance_due >= 0``.
    """

    id: str
    vendor_id: str
    bill_number: str
    bill_date: date
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: BillStatus = BillStatus.OPEN
    credits_applied: tuple[AppliedCredit, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for name in ("total", "amount_paid", "balance_due"):
            _coerce(self, name)
        if not isinstance(self.status, BillStatus):
            object.__setattr__(self, "status", BillStatus(self.status))
        object.__setattr__(self, "credits_applied", tuple(self.credits_applied))

        if self.balance_due < ZERO:
            raise ValueError("balance_due cannot be negative")
        # INVARIANT: balance_due == total - amount_paid - sum(credits_applied)
        expected = self.total - self.amount_paid - self.total_credits_applied
        if self.balance_due != expected:
            logger.warning(
                "bill_balance_mismatch",
                extra={
                    "bill_id": self.id,
                    "balance_due": str(self.balance_due),
                    "expected_balance_due": str(expected),
                },
            )
            raise ValueError(
                f"balance_due ({self.balance_due}) must equal total - amount_paid "
                f"- credits applied ({expected})"
            )

    @property
    def total_credits_applied(self) -> Decimal:
        return sum_amounts(c.amount for c in self.credits_applied)

    @property
    def accepts_credit(self) -> bool:
        """True if the bill is open for credit application."""
        return self.status not in CLOSED_BILL_STATUSES and self.balance_due > ZERO
