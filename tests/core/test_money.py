from decimal import Decimal

import pytest

from src.shared.utils.money import round_money, split_money, sum_money


class TestRoundMoney:
    """Tests for round_money function."""

    def test_round_half_up(self):
        assert round_money(10.125) == Decimal("10.13")
        assert round_money(10.124) == Decimal("10.12")
        assert round_money("10.115") == Decimal("10.12")

    def test_from_decimal_and_int(self):
        assert round_money(Decimal("99.999")) == Decimal("100.00")
        assert round_money(500) == Decimal("500.00")
        assert str(round_money(0)) == "0.00"

    def test_negative_rounds_half_toward_zero(self):
        assert round_money(-10.125) == Decimal("-10.12")
        assert round_money(-10.126) == Decimal("-10.13")


class TestSumMoney:
    """Tests for sum_money function."""

    def test_mixed_inputs(self):
        assert sum_money([Decimal("0.10"), 0.2, "0.30", 1]) == Decimal("1.60")

    def test_empty(self):
        assert sum_money([]) == Decimal("0.00")


class TestSplitMoney:
    """Tests for split_money function."""

    def test_remainder_goes_to_last_share(self):
        assert split_money(Decimal("1000.00"), 3) == [
            Decimal("333.33"),
            Decimal("333.33"),
            Decimal("333.34"),
        ]

    def test_even_split(self):
        assert split_money("900", 3) == [Decimal("300.00")] * 3

    def test_single_share(self):
        assert split_money(Decimal("90.00"), 1) == [Decimal("90.00")]

    def test_shares_add_up(self):
        for parts in range(1, 13):
            assert sum(split_money(Decimal("1234.57"), parts)) == Decimal("1234.57")

    def test_rejects_zero_parts(self):
        with pytest.raises(ValueError):
            split_money(Decimal("10"), 0)
