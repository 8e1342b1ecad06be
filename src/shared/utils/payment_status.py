"""
Tri-state payment status shared by fees, installments and reconciliation.

This is the only place a paid/partial/unpaid status is derived.
"""

from decimal import Decimal
from enum import StrEnum
from typing import Union

from src.core.exceptions import StatusComputationInputError
from src.shared.utils.money import round_money

Amount = Union[Decimal, float, int, str]

ZERO = Decimal("0.00")


class PaymentStatus(StrEnum):
    """Status of a fee or installment."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


def to_money(value: Amount | None) -> Decimal:
    """Convert a possibly-missing amount to a rounded Decimal (None -> 0.00)."""
    if value is None:
        return ZERO
    return round_money(value)


def compute_status(paid_to_date: Amount, net_amount: Amount) -> PaymentStatus:
    """
    Derive status from what has been paid against what is owed.

    Examples:
        >>> compute_status(0, 500)
        <PaymentStatus.UNPAID: 'unpaid'>
        >>> compute_status(250, 500)
        <PaymentStatus.PARTIAL: 'partial'>
        >>> compute_status(500, 500)
        <PaymentStatus.PAID: 'paid'>
    """
    paid = to_money(paid_to_date)
    net = to_money(net_amount)
    if paid < 0:
        raise StatusComputationInputError("paid_to_date", paid)
    if net < 0:
        raise StatusComputationInputError("net_amount", net)

    if paid == 0:
        return PaymentStatus.UNPAID
    if paid >= net:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def net_amount(amount: Amount, discount: Amount | None = None) -> Decimal:
    """Gross amount minus discount, floored at zero. Missing discount counts as 0."""
    return max(ZERO, to_money(amount) - to_money(discount))


def balance_of(amount: Amount, discount: Amount | None, paid: Amount | None) -> Decimal:
    """Outstanding amount = amount - discount - paid, floored at zero."""
    return max(ZERO, net_amount(amount, discount) - to_money(paid))
