"""
Tests for the GST Engine.

Covers:
- CGST/SGST split per bracket
- Unknown and missing tags
- Order independence
- Custom brackets
"""

from decimal import Decimal

import pytest

from credit_engines.tax import DEFAULT_GST_BRACKETS, GstBracket, GstCalculator, GstSplit
from tests.factories import make_item


class TestGstBracket:
    """Tests for GstBracket."""

    @pytest.mark.parametrize(
        "percent, half",
        [("18", "0.09"), ("12", "0.06"), ("5", "0.025")],
    )
    def test_half_rate(self, percent, half):
        assert GstBracket("x", Decimal(percent)).half_rate == Decimal(half)

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            GstBracket("gst_bad", Decimal("-1"))

    def test_defaults(self):
        assert [b.tag for b in DEFAULT_GST_BRACKETS] == ["gst_5", "gst_12", "gst_18"]


class TestComputeTax:
    """Tests for GstCalculator.compute_tax."""

    def setup_method(self):
        self.calculator = GstCalculator()

    def test_empty_items(self):
        assert self.calculator.compute_tax([]) == GstSplit(Decimal("0"), Decimal("0"))

    def test_gst_18_example(self):
        """rate 1000, qty 2, gst_18 -> 180 CGST and 180 SGST."""
        split = self.calculator.compute_tax([make_item("1000", quantity="2", tax="gst_18")])

        assert split.cgst == Decimal("180")
        assert split.sgst == Decimal("180")
        assert split.total == Decimal("360")

    def test_gst_12_and_5(self):
        split = self.calculator.compute_tax([
            make_item("100", tax="gst_12"),
            make_item("200", tax="gst_5"),
        ])

        # 100 * 0.06 + 200 * 0.025
        assert split.cgst == Decimal("11")
        assert split.sgst == Decimal("11")

    def test_unknown_and_missing_tags_contribute_zero(self):
        split = self.calculator.compute_tax([
            make_item("100", tax="gst_28"),
            make_item("100", tax=None),
            make_item("100", tax="exempt"),
        ])

        assert split.total == Decimal("0")

    def test_item_discount_not_in_base(self):
        """Base is rate * quantity; item discounts do not reduce it."""
        split = self.calculator.compute_tax([make_item("100", tax="gst_18", discount="50")])

        assert split.cgst == Decimal("9")

    def test_order_independent(self):
        items = [
            make_item("333.33", quantity="3", tax="gst_18"),
            make_item("19.99", quantity="7", tax="gst_5"),
            make_item("1.01", quantity="11", tax="gst_12"),
        ]

        forward = self.calculator.compute_tax(items)
        backward = self.calculator.compute_tax(list(reversed(items)))

        assert forward == backward

    def test_results_not_rounded(self):
        split = self.calculator.compute_tax([make_item("0.10", tax="gst_5")])

        assert split.cgst == Decimal("0.0025")


class TestCustomBrackets:
    """Brackets come from configuration."""

    def test_mapping_of_percentages(self):
        calculator = GstCalculator({"gst_28": "28"})

        split = calculator.compute_tax([
            make_item("100", tax="gst_28"),
            make_item("100", tax="gst_18"),
        ])

        assert split.cgst == Decimal("14")

    def test_duplicate_brackets_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            GstCalculator([GstBracket("a", Decimal("5")), GstBracket("a", Decimal("12"))])

    def test_brackets_sorted_by_tag(self):
        calculator = GstCalculator()
        assert [b.tag for b in calculator.brackets] == ["gst_12", "gst_18", "gst_5"]
