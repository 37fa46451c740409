"""
Pytest fixtures for the vendor credit test suite.

Provides:
- The canonical scenario: a 500.00 credit against bills due 300.00 / 400.00
- A deterministic clock
- Logging reset between tests so caplog sees credit_kernel records
"""

from datetime import datetime, timezone

import pytest

from credit_kernel.domain.clock import DeterministicClock
from credit_kernel.domain.documents import Bill, VendorCredit
from credit_kernel.logging_config import LogContext, reset_logging
from tests.factories import make_bill, make_credit


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def credit() -> VendorCredit:
    """OPEN credit with 500.00 available."""
    return make_credit()


@pytest.fixture
def bills() -> list[Bill]:
    """Bill A due 300.00 and bill B due 400.00, same vendor."""
    return [make_bill("bill-a", "300.00"), make_bill("bill-b", "400.00")]


@pytest.fixture
def clock() -> DeterministicClock:
    """Clock fixed at 2024-06-01 09:30 UTC."""
    return DeterministicClock(datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc))
