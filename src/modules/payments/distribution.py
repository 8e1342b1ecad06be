"""
Distribution of one payment across outstanding installments.

Everything here is pure: inputs are never mutated and nothing is persisted.
Callers (payment recording, bulk import, reconciliation scripts) write the
returned values back themselves.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Sequence

from src.core.exceptions import InvalidPaymentAmountError
from src.shared.utils.money import round_money
from src.shared.utils.payment_status import (
    ZERO,
    Amount,
    PaymentStatus,
    compute_status,
    net_amount,
    to_money,
)


@dataclass(frozen=True)
class InstallmentInput:
    """Installment as the distributor sees it."""

    id: Any
    amount: Decimal
    paid_amount: Decimal = ZERO
    due_date: date | None = None


@dataclass(frozen=True)
class InstallmentAllocation:
    """New state of one installment after distribution."""

    id: Any
    amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: PaymentStatus
    allocated: Decimal = ZERO


@dataclass(frozen=True)
class DistributionResult:
    """Per-installment results plus aggregate totals."""

    installments: list[InstallmentAllocation] = field(default_factory=list)
    total_paid: Decimal = ZERO
    total_amount: Decimal = ZERO
    balance: Decimal = ZERO
    status: PaymentStatus = PaymentStatus.UNPAID
    allocated_total: Decimal = ZERO
    # Over-payment beyond what was owed; reported, never carried anywhere
    unallocated: Decimal = ZERO

    @property
    def changed(self) -> list[InstallmentAllocation]:
        """Installments that received part of this payment."""
        return [item for item in self.installments if item.allocated > 0]


def _coerce(installment: InstallmentInput | Mapping[str, Any] | Any) -> InstallmentInput:
    """Accept dataclasses, ORM rows or dicts (``paid_amount`` or ``paidAmount``)."""
    if isinstance(installment, InstallmentInput):
        return installment
    if isinstance(installment, Mapping):
        get = installment.get
    else:
        def get(key, default=None):
            return getattr(installment, key, default)
    paid = get("paid_amount")
    if paid is None:
        paid = get("paidAmount")
    return InstallmentInput(
        id=get("id"),
        amount=to_money(get("amount")),
        paid_amount=to_money(paid),
        due_date=get("due_date"),
    )


def _payment_amount(value: Amount) -> Decimal:
    """Payment amount as money; negative, NaN, infinite or non-numeric input is rejected."""
    try:
        payment = to_money(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidPaymentAmountError(value) from exc
    if payment < 0:
        raise InvalidPaymentAmountError(value)
    return payment


def order_by_due_date(installments: Iterable[Any]) -> list[InstallmentInput]:
    """
    Earliest-due-first ordering. Stable; installments without a due date go last.

    ``distribute_payment`` keeps caller order, so callers that want
    chronological allocation pass their list through this first.
    """
    items = [_coerce(inst) for inst in installments]
    return sorted(items, key=lambda inst: (inst.due_date is None, inst.due_date or date.min))


def distribute_payment(
    payment_amount: Amount,
    installments: Sequence[InstallmentInput | Mapping[str, Any] | Any],
) -> DistributionResult:
    """
    Allocate ``payment_amount`` across ``installments`` in the given order.

    Each installment receives min(remaining, amount - paid_amount). Fully paid
    installments and everything after the money runs out keep their
    paid_amount; their balance/status are still recomputed. Any amount beyond
    the total outstanding is dropped and reported as ``unallocated``.

    Example:
        3 x 500 unpaid, payment 700 -> [500 paid, 200 partial, 0 unpaid],
        total_paid 700, balance 800, status partial.
    """
    payment = _payment_amount(payment_amount)

    remaining = payment
    results: list[InstallmentAllocation] = []

    for inst in (_coerce(i) for i in installments):
        current_paid = inst.paid_amount
        unpaid = inst.amount - current_paid
        allocated = ZERO

        if remaining > 0 and unpaid > 0:
            allocated = min(remaining, unpaid)
            remaining -= allocated

        new_paid = round_money(current_paid + allocated)
        results.append(
            InstallmentAllocation(
                id=inst.id,
                amount=inst.amount,
                paid_amount=new_paid,
                balance=max(ZERO, round_money(inst.amount - new_paid)),
                status=compute_status(new_paid, inst.amount),
                allocated=round_money(allocated),
            )
        )

    total_paid = round_money(sum((r.paid_amount for r in results), ZERO))
    total_amount = round_money(sum((r.amount for r in results), ZERO))

    return DistributionResult(
        installments=results,
        total_paid=total_paid,
        total_amount=total_amount,
        balance=max(ZERO, round_money(total_amount - total_paid)),
        status=compute_status(total_paid, total_amount),
        allocated_total=round_money(payment - remaining),
        unallocated=round_money(remaining),
    )


@dataclass(frozen=True)
class FeeTotals:
    total_paid: Decimal
    balance: Decimal
    status: PaymentStatus


def calculate_fee_from_installments(
    fee_amount: Amount,
    fee_discount: Amount | None,
    installments: Iterable[Any],
) -> FeeTotals:
    """Fee paid/balance/status derived from its installments' paid amounts."""
    net = net_amount(fee_amount, fee_discount)
    total_paid = round_money(sum((_coerce(i).paid_amount for i in installments), ZERO))
    return FeeTotals(
        total_paid=total_paid,
        balance=max(ZERO, round_money(net - total_paid)),
        status=compute_status(total_paid, net),
    )


@dataclass(frozen=True)
class InstallmentPayment:
    new_paid_amount: Decimal
    balance: Decimal
    status: PaymentStatus
    applied: Decimal


def calculate_installment_payment(
    installment_amount: Amount,
    previously_paid: Amount,
    payment_amount: Amount,
) -> InstallmentPayment:
    """Apply a payment to a single installment (full or partial)."""
    payment = _payment_amount(payment_amount)
    single = InstallmentInput(
        id=None,
        amount=to_money(installment_amount),
        paid_amount=to_money(previously_paid),
    )
    result = distribute_payment(payment, [single])
    item = result.installments[0]
    return InstallmentPayment(
        new_paid_amount=item.paid_amount,
        balance=item.balance,
        status=item.status,
        applied=item.allocated,
    )
