from decimal import Decimal

import pytest

from src.core.exceptions import StatusComputationInputError
from src.shared.utils.payment_status import PaymentStatus, balance_of, compute_status, net_amount


class TestComputeStatus:
    """Tests for compute_status function."""

    def test_unpaid(self):
        assert compute_status(0, 500) == PaymentStatus.UNPAID

    def test_partial(self):
        assert compute_status(Decimal("0.01"), 500) == PaymentStatus.PARTIAL
        assert compute_status(499, 500) == PaymentStatus.PARTIAL

    def test_paid(self):
        assert compute_status(500, 500) == PaymentStatus.PAID

    def test_overpaid_is_paid(self):
        assert compute_status(600, 500) == PaymentStatus.PAID

    def test_zero_amount_with_nothing_paid_is_unpaid(self):
        assert compute_status(0, 0) == PaymentStatus.UNPAID

    def test_accepts_strings(self):
        assert compute_status("250.00", "500") == PaymentStatus.PARTIAL

    def test_negative_inputs_rejected(self):
        with pytest.raises(StatusComputationInputError):
            compute_status(-1, 500)
        with pytest.raises(StatusComputationInputError):
            compute_status(0, -500)

    def test_every_input_maps_to_one_status(self):
        for paid in range(0, 1100, 50):
            assert compute_status(paid, 1000) in set(PaymentStatus)


class TestNetAmountAndBalance:
    """Tests for net_amount and balance_of."""

    def test_net_amount(self):
        assert net_amount(1000, 100) == Decimal("900.00")
        assert net_amount(1000, None) == Decimal("1000.00")

    def test_net_amount_floored_at_zero(self):
        assert net_amount(100, 150) == Decimal("0.00")

    def test_balance(self):
        assert balance_of(1000, 100, 400) == Decimal("500.00")
        assert balance_of(1000, 100, 950) == Decimal("0.00")
        assert balance_of(1000, None, None) == Decimal("1000.00")
