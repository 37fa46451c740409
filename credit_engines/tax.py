"""
GST Engine - Split intra-state GST on vendor credit items into CGST and SGST.

Each bracket tag (``gst_5``, ``gst_12``, ``gst_18``) names a nominal GST
rate that is charged half as central tax and half as state tax.  Pure
functions with no I/O - brackets are provided at construction.

Usage:
    from credit_engines.tax import GstCalculator
    from credit_kernel.domain.documents import VendorCreditItem

    calculator = GstCalculator()
    split = calculator.compute_tax([
        VendorCreditItem(quantity=2, rate="1000", tax="gst_18"),
    ])
    print(split.cgst, split.sgst)  # 180.00 180.00
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from credit_kernel.domain.documents import VendorCreditItem
from credit_kernel.domain.values import ZERO, sum_amounts, to_decimal
from credit_kernel.logging_config import get_logger

logger = get_logger("engines.tax")


@dataclass(frozen=True)
class GstBracket:
    """
    A GST bracket: a tag and its nominal rate in percent.

    ``half_rate`` is the share charged to each of CGST and SGST
    (18 -> 0.09).
    """

    tag: str
    rate_percent: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.rate_percent, Decimal):
            object.__setattr__(self, "rate_percent", to_decimal(self.rate_percent))
        if not self.tag:
            raise ValueError("GST bracket tag is required")
        if self.rate_percent < ZERO:
            raise ValueError("GST rate cannot be negative")

    @property
    def half_rate(self) -> Decimal:
        return self.rate_percent / Decimal("200")


DEFAULT_GST_BRACKETS: tuple[GstBracket, ...] = (
    GstBracket("gst_5", Decimal("5")),
    GstBracket("gst_12", Decimal("12")),
    GstBracket("gst_18", Decimal("18")),
)


@dataclass(frozen=True)
class GstSplit:
    """CGST and SGST totals for a set of items.  Values are not rounded."""

    cgst: Decimal
    sgst: Decimal

    @property
    def total(self) -> Decimal:
        return self.cgst + self.sgst


class GstCalculator:
    """
    Compute CGST/SGST from line items.

    Contract:
        ``base = rate * quantity`` per item (item discounts are not part of
        the taxable base); ``base * half_rate`` goes to both CGST and SGST.
    Guarantees:
        - Items with a missing or unknown tag contribute zero.
        - Per-bracket subtotals are summed in sorted tag order, so the
          result does not depend on item order.
        - Empty input yields ``GstSplit(0, 0)``.
    Non-goals:
        - IGST (inter-state) is not derived; it is a stored field only.
        - No rounding; callers round for display.
    """

    def __init__(self, brackets: Iterable[GstBracket] | Mapping[str, object] | None = None):
        if brackets is None:
            brackets = DEFAULT_GST_BRACKETS
        if isinstance(brackets, Mapping):
            brackets = [GstBracket(tag, to_decimal(pct)) for tag, pct in brackets.items()]
        self._brackets: dict[str, GstBracket] = {}
        for bracket in brackets:
            if bracket.tag in self._brackets:
                raise ValueError(f"Duplicate GST bracket: {bracket.tag}")
            self._brackets[bracket.tag] = bracket

    @property
    def brackets(self) -> tuple[GstBracket, ...]:
        return tuple(self._brackets[tag] for tag in sorted(self._brackets))

    def bracket_for(self, tag: str | None) -> GstBracket | None:
        if tag is None:
            return None
        return self._brackets.get(tag)

    def compute_tax(self, items: Iterable[VendorCreditItem]) -> GstSplit:
        """
        Derive CGST and SGST for ``items``.

        Args:
            items: Vendor credit line items.

        Returns:
            GstSplit with unrounded CGST and SGST.
        """
        per_bracket: dict[str, Decimal] = {}
        item_count = 0
        unmatched = 0
        for item in items:
            item_count += 1
            bracket = self.bracket_for(item.tax)
            if bracket is None:
                if item.tax is not None:
                    unmatched += 1
                continue
            half = item.base_amount * bracket.half_rate
            per_bracket[bracket.tag] = per_bracket.get(bracket.tag, ZERO) + half

        half_total = sum_amounts(per_bracket[tag] for tag in sorted(per_bracket))

        if unmatched:
            logger.info("gst_unknown_tags", extra={
                "item_count": item_count,
                "unmatched_count": unmatched,
            })
        logger.debug("gst_computed", extra={
            "item_count": item_count,
            "brackets": sorted(per_bracket),
            "cgst": str(half_total),
            "sgst": str(half_total),
        })

        # CGST and SGST are equal halves of the same bracket rate
        return GstSplit(cgst=half_total, sgst=half_total)
