"""
Vendor Credits Module (``credit_modules.vendor_credits``).

Responsibility
--------------
Thin glue for vendor credit notes: applying credit to outstanding bills,
refunds, voids, clones and status changes, plus GST and journal views.

Architecture position
---------------------
**Modules layer** -- workflow definition, config schema, and a service
facade that delegates all computation to ``credit_engines``.

Failure modes
-------------
* Typed ``CreditKernelError`` subclasses propagate from the engines; the
  service logs them and re-raises.
"""

from credit_modules.vendor_credits.config import VendorCreditConfig
from credit_modules.vendor_credits.service import (
    CommittedBalances,
    EntityLocks,
    VendorCreditService,
)
from credit_modules.vendor_credits.workflows import (
    BALANCE_EXHAUSTED,
    VENDOR_CREDIT_WORKFLOW,
)

__all__ = [
    "BALANCE_EXHAUSTED",
    "CommittedBalances",
    "EntityLocks",
    "VENDOR_CREDIT_WORKFLOW",
    "VendorCreditConfig",
    "VendorCreditService",
]
