"""
Values -- Monetary helpers shared by every credit engine.

Responsibility:
    One place for turning raw inputs into ``Decimal`` amounts and for
    currency rounding.  Allocation status checks ("has this balance reached
    zero?"), refund status checks and journal balance checks all go through
    ``round_money`` so they cannot drift apart.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by the document records and every engine.

Invariants enforced:
    - Amounts are ``Decimal``, never ``float``.  Floats arriving from a
      caller are converted through ``str`` so ``0.1`` stays ``0.1``.
    - Rounding is two decimal places, ROUND_HALF_UP, unless a caller passes
      another precision explicitly.

Failure modes:
    - ``to_decimal`` raises ValueError for unparseable or non-finite input.
    - ``parse_amount`` never raises; it returns None instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str | float) -> Decimal:
    """
    Convert a raw value to a finite ``Decimal``.

    Raises:
        ValueError: if the value cannot be parsed or is NaN/Infinity.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip() if value is not None else ""
        try:
            result = Decimal(text)
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def parse_amount(raw: object) -> Decimal | None:
    """
    Parse user input into a non-negative finite amount.

    Returns None for anything else (empty strings, text, NaN, Infinity,
    negative numbers) so an interactive edit can be rejected quietly.
    """
    if raw is None:
        return None
    try:
        amount = to_decimal(raw)  # type: ignore[arg-type]
    except ValueError:
        return None
    if amount < ZERO:
        return None
    return amount


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the only rounding function the engines use for status and
    balance decisions.  Precision is widened for the call so magnitudes
    beyond the context precision still quantize.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + decimal_places + 2)
        return value.quantize(quantum, rounding=rounding)


def rounds_to_zero(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> bool:
    """True if ``value`` is zero once rounded to currency precision."""
    return round_money(value, decimal_places) == ZERO


def sum_amounts(values: Iterable[Decimal]) -> Decimal:
    """Sum Decimal amounts, returning ``Decimal("0")`` for an empty input."""
    return sum(values, ZERO)
