"""Pydantic schemas for Payments module."""

from datetime import date
from decimal import Decimal

from pydantic import Field

from src.modules.fees.models import PaymentMethod
from src.modules.fees.schemas import FeeDetailResponse
from src.shared.schemas.base import BaseSchema
from src.shared.utils.payment_status import PaymentStatus


class PaymentCreate(BaseSchema):
    """
    Payment received against a fee.

    Zero is accepted and changes nothing; negative amounts are rejected by
    the distributor.
    """

    amount: Decimal = Field(..., description="Payment amount")
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: date | None = None
    note: str | None = None
    actor: str | None = Field(None, max_length=255)


class InstallmentAllocationResponse(BaseSchema):
    """How much of the payment went to one installment."""

    installment_id: int
    allocated: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: PaymentStatus
    receipt_number: str | None = None


class PaymentResult(BaseSchema):
    """Fee state after a payment plus the allocation breakdown."""

    fee: FeeDetailResponse
    amount: Decimal
    allocated_total: Decimal
    unallocated: Decimal
    fee_receipt_number: str | None = None
    allocations: list[InstallmentAllocationResponse] = []
