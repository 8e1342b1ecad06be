"""Tests for payment distribution across installments."""

from datetime import date
from decimal import Decimal

import pytest

from src.core.exceptions import InvalidPaymentAmountError
from src.modules.payments.distribution import (
    InstallmentInput,
    calculate_fee_from_installments,
    calculate_installment_payment,
    distribute_payment,
    order_by_due_date,
)
from src.shared.utils.payment_status import PaymentStatus


def three_unpaid(amount: str = "500") -> list[InstallmentInput]:
    return [InstallmentInput(id=i, amount=Decimal(amount)) for i in (1, 2, 3)]


class TestDistributePayment:
    """Tests for distribute_payment."""

    def test_700_over_three_500(self):
        result = distribute_payment(Decimal("700"), three_unpaid())

        paid = [(i.paid_amount, i.status) for i in result.installments]
        assert paid == [
            (Decimal("500.00"), PaymentStatus.PAID),
            (Decimal("200.00"), PaymentStatus.PARTIAL),
            (Decimal("0.00"), PaymentStatus.UNPAID),
        ]
        assert result.total_paid == Decimal("700.00")
        assert result.total_amount == Decimal("1500.00")
        assert result.balance == Decimal("800.00")
        assert result.status == PaymentStatus.PARTIAL
        assert [i.id for i in result.changed] == [1, 2]

    def test_continues_partially_paid_installment(self):
        installments = [
            InstallmentInput(id=1, amount=Decimal("500"), paid_amount=Decimal("500")),
            InstallmentInput(id=2, amount=Decimal("500"), paid_amount=Decimal("200")),
            InstallmentInput(id=3, amount=Decimal("500")),
        ]
        result = distribute_payment(Decimal("400"), installments)

        assert [i.allocated for i in result.installments] == [
            Decimal("0.00"),
            Decimal("300.00"),
            Decimal("100.00"),
        ]
        assert result.installments[1].status == PaymentStatus.PAID
        assert result.installments[2].status == PaymentStatus.PARTIAL

    def test_conservation(self):
        before = three_unpaid()
        result = distribute_payment(Decimal("1234.56"), before)
        delta = sum(i.paid_amount for i in result.installments) - sum(
            i.paid_amount for i in before
        )
        assert delta == Decimal("1234.56")
        assert result.allocated_total == Decimal("1234.56")
        assert result.unallocated == Decimal("0.00")

    def test_zero_payment_changes_nothing(self):
        before = [
            InstallmentInput(id=1, amount=Decimal("500"), paid_amount=Decimal("500")),
            InstallmentInput(id=2, amount=Decimal("500"), paid_amount=Decimal("120")),
        ]
        result = distribute_payment(0, before)

        assert [i.paid_amount for i in result.installments] == [
            Decimal("500.00"),
            Decimal("120.00"),
        ]
        assert result.changed == []
        assert result.allocated_total == Decimal("0.00")

    def test_overpayment_reported_as_unallocated(self):
        result = distribute_payment(Decimal("1600"), three_unpaid())

        assert all(i.status == PaymentStatus.PAID for i in result.installments)
        assert result.total_paid == Decimal("1500.00")
        assert result.unallocated == Decimal("100.00")
        assert result.balance == Decimal("0.00")

    def test_keeps_caller_order(self):
        installments = [
            InstallmentInput(id="late", amount=Decimal("100"), due_date=date(2025, 3, 1)),
            InstallmentInput(id="early", amount=Decimal("100"), due_date=date(2025, 1, 1)),
        ]
        result = distribute_payment(Decimal("100"), installments)
        assert result.installments[0].status == PaymentStatus.PAID
        assert result.installments[1].status == PaymentStatus.UNPAID

    def test_accepts_dicts_and_does_not_mutate_them(self):
        rows = [
            {"id": 1, "amount": "300", "paidAmount": "100"},
            {"id": 2, "amount": "300", "paid_amount": 0},
        ]
        result = distribute_payment("250", rows)

        assert [i.paid_amount for i in result.installments] == [
            Decimal("300.00"),
            Decimal("50.00"),
        ]
        assert rows[0]["paidAmount"] == "100"

    def test_empty_installments(self):
        result = distribute_payment(Decimal("50"), [])
        assert result.installments == []
        assert result.status == PaymentStatus.UNPAID
        assert result.unallocated == Decimal("50.00")

    def test_negative_payment_rejected(self):
        with pytest.raises(InvalidPaymentAmountError):
            distribute_payment(Decimal("-1"), three_unpaid())

    @pytest.mark.parametrize("amount", ["abc", Decimal("NaN"), float("nan"), Decimal("Infinity")])
    def test_non_numeric_payment_rejected(self, amount):
        with pytest.raises(InvalidPaymentAmountError):
            distribute_payment(amount, three_unpaid())


class TestOrderByDueDate:
    """Tests for order_by_due_date."""

    def test_earliest_first_and_missing_last(self):
        ordered = order_by_due_date(
            [
                InstallmentInput(id=1, amount=Decimal("1"), due_date=None),
                InstallmentInput(id=2, amount=Decimal("1"), due_date=date(2025, 5, 1)),
                InstallmentInput(id=3, amount=Decimal("1"), due_date=date(2025, 2, 1)),
            ]
        )
        assert [i.id for i in ordered] == [3, 2, 1]


class TestFeeTotals:
    """Tests for calculate_fee_from_installments and calculate_installment_payment."""

    def test_fee_from_installments(self):
        installments = [
            {"id": 1, "amount": "450", "paid_amount": "450"},
            {"id": 2, "amount": "450", "paid_amount": "100"},
        ]
        totals = calculate_fee_from_installments(Decimal("1000"), Decimal("100"), installments)
        assert totals.total_paid == Decimal("550.00")
        assert totals.balance == Decimal("350.00")
        assert totals.status == PaymentStatus.PARTIAL

    def test_fee_fully_paid_through_installments(self):
        installments = [{"id": 1, "amount": "900", "paid_amount": "900"}]
        totals = calculate_fee_from_installments(1000, 100, installments)
        assert totals.status == PaymentStatus.PAID
        assert totals.balance == Decimal("0.00")

    def test_single_installment_payment(self):
        payment = calculate_installment_payment(Decimal("500"), Decimal("200"), Decimal("100"))
        assert payment.new_paid_amount == Decimal("300.00")
        assert payment.balance == Decimal("200.00")
        assert payment.status == PaymentStatus.PARTIAL
        assert payment.applied == Decimal("100.00")

    def test_single_installment_payment_caps_at_amount(self):
        payment = calculate_installment_payment(500, 450, 100)
        assert payment.new_paid_amount == Decimal("500.00")
        assert payment.applied == Decimal("50.00")
        assert payment.status == PaymentStatus.PAID

    def test_single_installment_negative_rejected(self):
        with pytest.raises(InvalidPaymentAmountError):
            calculate_installment_payment(500, 0, -5)

    def test_single_installment_nan_rejected(self):
        with pytest.raises(InvalidPaymentAmountError):
            calculate_installment_payment(500, 0, "NaN")
