from decimal import Decimal

import pytest

from src.shared.utils.money import ZERO, clamp_due, round_money, sum_money


class TestRoundMoney:
    """Tests for round_money function."""

    def test_round_half_up(self):
        """Test ROUND_HALF_UP behavior."""
        assert round_money(10.125) == Decimal("10.13")
        assert round_money(10.124) == Decimal("10.12")
        assert round_money(10.115) == Decimal("10.12")  # banker's rounding edge case
        assert round_money(10.145) == Decimal("10.15")

    def test_from_decimal(self):
        """Test rounding from Decimal input."""
        assert round_money(Decimal("10.125")) == Decimal("10.13")
        assert round_money(Decimal("99.999")) == Decimal("100.00")

    def test_from_string(self):
        """Test rounding from string input."""
        assert round_money("10.125") == Decimal("10.13")
        assert round_money("0.001") == Decimal("0.00")

    def test_from_int(self):
        """Test rounding from int input."""
        assert round_money(100) == Decimal("100.00")
        assert round_money(0) == Decimal("0.00")

    def test_negative_numbers(self):
        """Test rounding negative numbers."""
        assert round_money(-10.125) == Decimal("-10.12")  # rounds toward zero
        assert round_money(-10.126) == Decimal("-10.13")

    def test_precision(self):
        """Test that result always has 2 decimal places."""
        result = round_money(10)
        assert str(result) == "10.00"

        result = round_money(10.1)
        assert str(result) == "10.10"

    def test_invalid_string(self):
        """Non-numeric strings are rejected."""
        with pytest.raises(ValueError):
            round_money("ten")


class TestSumMoney:
    """Tests for sum_money function."""

    def test_empty(self):
        assert sum_money([]) == ZERO

    def test_mixed_inputs(self):
        assert sum_money([Decimal("0.10"), "0.20", 1]) == Decimal("1.30")

    def test_no_float_drift(self):
        assert sum_money([0.1] * 10) == Decimal("1.00")


class TestClampDue:
    """Tests for clamp_due function."""

    def test_partial(self):
        assert clamp_due(Decimal("1000"), Decimal("400")) == Decimal("600.00")

    def test_overpaid_is_zero(self):
        assert clamp_due(Decimal("1000"), Decimal("1500")) == ZERO

    def test_exact(self):
        assert clamp_due(Decimal("1000"), Decimal("1000")) == ZERO
