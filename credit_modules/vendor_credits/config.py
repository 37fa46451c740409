"""
Vendor Credit Configuration Schema (``credit_modules.vendor_credits.config``).

Responsibility
--------------
Defines the declarative configuration schema for the vendor credit module:
base currency, GST brackets, journal account names and the applied-date
policy.  Defaults match intra-state Indian GST practice.

Architecture position
---------------------
**Modules layer** -- configuration schema only.  Loaded at runtime via
``credit_config.get_active_config()``; no component reads config files or
environment variables directly.

Invariants enforced
-------------------
* GST rates are ``Decimal`` percentages (never ``float``) in [0, 100].
* ``base_currency`` is a three-letter upper-case code.
* Cloned credits always start in DRAFT.

Failure modes
-------------
* ``ValueError`` at construction if any constraint is violated.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from credit_engines.journal import JournalAccounts
from credit_engines.tax import DEFAULT_GST_BRACKETS, GstBracket
from credit_kernel.domain.documents import VendorCreditStatus
from credit_kernel.domain.values import to_decimal
from credit_kernel.logging_config import get_logger

logger = get_logger("modules.vendor_credits.config")


def _default_brackets() -> dict[str, Decimal]:
    return {b.tag: b.rate_percent for b in DEFAULT_GST_BRACKETS}


@dataclass
class VendorCreditConfig:
    """
    Configuration schema for the vendor credit module.

    Override at instantiation with company-specific values:

        config = VendorCreditConfig(
            gst_brackets={"gst_5": Decimal("5"), "gst_28": Decimal("28")},
            auto_date_applied=False,
        )
    """

    base_currency: str = "INR"

    # Bracket tag -> nominal GST percent, split evenly into CGST and SGST
    gst_brackets: dict[str, Decimal] = field(default_factory=_default_brackets)

    journal_accounts: JournalAccounts = field(default_factory=JournalAccounts)

    # Stamp applied credits with today's date instead of the credit date
    auto_date_applied: bool = True

    clone_status: VendorCreditStatus = VendorCreditStatus.DRAFT

    def __post_init__(self):
        if (
            not isinstance(self.base_currency, str)
            or len(self.base_currency) != 3
            or not self.base_currency.isalpha()
            or not self.base_currency.isupper()
        ):
            raise ValueError(
                f"base_currency must be a 3-letter upper-case code, got '{self.base_currency}'"
            )

        brackets: dict[str, Decimal] = {}
        for tag, pct in self.gst_brackets.items():
            if not tag or not str(tag).strip():
                raise ValueError("gst_brackets tags cannot be empty")
            rate = to_decimal(pct)
            if rate < 0 or rate > Decimal("100"):
                raise ValueError(f"GST rate for '{tag}' must be between 0 and 100, got {rate}")
            brackets[str(tag)] = rate
        self.gst_brackets = brackets

        if not isinstance(self.journal_accounts, JournalAccounts):
            raise ValueError("journal_accounts must be a JournalAccounts instance")

        if self.clone_status != VendorCreditStatus.DRAFT:
            raise ValueError("clone_status must be DRAFT")

        logger.info(
            "vendor_credit_config_initialized",
            extra={
                "base_currency": self.base_currency,
                "gst_brackets": {k: str(v) for k, v in sorted(self.gst_brackets.items())},
                "auto_date_applied": self.auto_date_applied,
            },
        )

    def build_brackets(self) -> tuple[GstBracket, ...]:
        """GstBracket objects in sorted tag order."""
        return tuple(
            GstBracket(tag, rate) for tag, rate in sorted(self.gst_brackets.items())
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the default GST brackets and account names."""
        logger.info("vendor_credit_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g., a parsed YAML file).

        Preconditions:
            - ``data`` keys match ``VendorCreditConfig`` field names.
        Postconditions:
            - ``journal_accounts`` hydrated from a nested mapping.
        Raises:
            ValueError: on unknown keys or if validation fails.
        """
        logger.info(
            "vendor_credit_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown vendor credit config keys: {unknown}")
        if "journal_accounts" in data and isinstance(data["journal_accounts"], dict):
            data["journal_accounts"] = JournalAccounts(**data["journal_accounts"])
        if "clone_status" in data and isinstance(data["clone_status"], str):
            data["clone_status"] = VendorCreditStatus(data["clone_status"].upper())
        if "gst_brackets" in data and data["gst_brackets"] is None:
            data["gst_brackets"] = {}
        return cls(**data)
