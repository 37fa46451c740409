"""
Credit Modules.

Thin orchestration layers over the credit kernel and engines.
Each module contains:
- Workflows (state machines)
- Configuration schemas (settings)
- A service facade

Modules:
- vendor_credits: Vendor credit notes applied to bills, refunded or voided
"""
