"""Tests for presentation helpers."""

import pytest
from decimal import Decimal

from roomledger.formatting import (
    format_money,
    format_percent,
    money_for_display,
    percent_for_display,
    round_money,
    round_percent,
)


class TestRounding:
    """Tests for presentation rounding."""

    @pytest.mark.parametrize("raw,expected", [
        (Decimal("2.675"), Decimal("2.68")),
        (Decimal("2.674"), Decimal("2.67")),
        (Decimal("-2.675"), Decimal("-2.68")),
        (1.005, Decimal("1.01")),
        ("10", Decimal("10.00")),
    ])
    def test_round_money_half_up(self, raw, expected):
        """Test money rounds half up to cents."""
        assert round_money(raw) == expected

    def test_round_percent(self):
        """Test percentages keep one decimal by default."""
        assert round_percent(Decimal("33.333")) == Decimal("33.3")
        assert round_percent(Decimal("66.666"), places=2) == Decimal("66.67")

    def test_display_values(self):
        """Test money displays as 2-place strings, percentages as floats."""
        assert money_for_display(Decimal("97.7499")) == "97.75"
        assert money_for_display(0.1 + 0.2) == "0.30"
        assert percent_for_display(None) is None
        assert percent_for_display(Decimal("12.345")) == 12.3


class TestFormatting:
    """Tests for human-readable strings."""

    @pytest.mark.parametrize("raw,expected", [
        (Decimal("22.75"), "$22.75"),
        (Decimal("-12.5"), "-$12.50"),
        (Decimal("1200"), "$1,200.00"),
        (Decimal("0"), "$0.00"),
    ])
    def test_format_money(self, raw, expected):
        """Test the sign goes before the symbol."""
        assert format_money(raw) == expected

    def test_format_money_custom_symbol(self):
        """Test another currency symbol."""
        assert format_money(Decimal("5"), "€") == "€5.00"

    def test_format_percent(self):
        """Test percentages, and N/A when there's nothing to compare."""
        assert format_percent(Decimal("50")) == "50.0%"
        assert format_percent(None) == "N/A"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
