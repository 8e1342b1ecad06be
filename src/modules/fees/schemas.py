"""Schemas for Fees module."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field, model_validator

from src.core.documents.models import ReceiptDocumentType
from src.modules.fees.models import FeeType
from src.shared.schemas.base import BaseSchema
from src.shared.utils.payment_status import PaymentStatus


# --- Installment Schemas ---


class InstallmentCreate(BaseSchema):
    """One scheduled installment of a new fee."""

    amount: Decimal = Field(..., ge=0)
    due_date: date | None = None
    installment_month: str | None = Field(None, max_length=50)
    paid_amount: Decimal = Field(Decimal("0.00"), ge=0)


class InstallmentResponse(BaseSchema):
    """Installment for API response."""

    id: int
    fee_id: int
    school_id: int
    student_id: str
    amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: PaymentStatus
    due_date: date | None
    paid_date: date | None
    installment_count: int | None
    installment_month: str | None
    payment_method: str | None
    payment_note: str | None
    receipt_number: str | None
    receipt_year: int | None = None
    created_at: datetime
    updated_at: datetime


# --- Fee Schemas ---


class FeeCreate(BaseSchema):
    """
    Create a fee, optionally with an installment plan.

    Either list ``installments`` explicitly or give ``installment_count`` to
    split the net amount evenly into monthly installments starting at
    ``due_date``. Neither: the fee is paid as a whole.
    """

    school_id: int
    student_id: str = Field(..., min_length=1, max_length=100)
    student_name: str = Field(..., min_length=1, max_length=255)
    grade: str | None = Field(None, max_length=100)
    fee_type: FeeType
    description: str | None = None
    amount: Decimal = Field(..., ge=0)
    discount: Decimal = Field(Decimal("0.00"), ge=0)
    due_date: date | None = None
    installments: list[InstallmentCreate] | None = None
    installment_count: int | None = Field(None, ge=1, le=60)

    @model_validator(mode="after")
    def check_plan(self):
        if self.discount > self.amount:
            raise ValueError("Discount cannot exceed amount")
        if self.installments is not None and self.installment_count is not None:
            raise ValueError("Give either installments or installment_count, not both")
        return self


class FeeResponse(BaseSchema):
    """Fee for API response."""

    id: int
    school_id: int
    student_id: str
    student_name: str
    grade: str | None
    fee_type: str
    description: str | None
    amount: Decimal
    discount: Decimal
    paid: Decimal
    balance: Decimal
    status: PaymentStatus
    due_date: date | None
    payment_date: date | None
    payment_method: str | None
    payment_note: str | None
    receipt_number: str | None
    receipt_year: int | None = None
    created_at: datetime
    updated_at: datetime


class FeeDetailResponse(FeeResponse):
    """Fee with its installments."""

    installments: list[InstallmentResponse] = []


class FeeFilters(BaseSchema):
    """Filters for listing fees."""

    school_id: int
    student_id: str | None = None
    status: PaymentStatus | None = None
    fee_type: FeeType | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)


# --- Receipts ---


class ReceiptNumberResponse(BaseSchema):
    """Receipt number of a fee or installment."""

    record_id: int
    document_type: ReceiptDocumentType
    receipt_number: str
    prefix: str = ""
    sequence: int | None = None
    year: int | None = None


# --- Reconciliation ---


class FeeReconciliationEntry(BaseSchema):
    """One fee whose stored totals or installment plan disagree."""

    fee_id: int
    old_paid: Decimal
    new_paid: Decimal
    old_status: str
    new_status: PaymentStatus
    installments_total: Decimal
    net_amount: Decimal

    @property
    def plan_mismatch(self) -> bool:
        return self.installments_total != self.net_amount


class ReconciliationResult(BaseSchema):
    """Result of recomputing fee totals from installments."""

    school_id: int
    fees_checked: int
    fees_updated: int
    plan_mismatches: list[int] = []
    entries: list[FeeReconciliationEntry] = []
