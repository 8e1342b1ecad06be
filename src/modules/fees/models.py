"""Fee and Installment models."""

from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import BaseModel
from src.shared.utils.payment_status import PaymentStatus, balance_of, compute_status, net_amount


class FeeType(StrEnum):
    """Fee type enumeration."""

    TUITION = "tuition"
    TRANSPORTATION = "transportation"
    ACTIVITIES = "activities"
    UNIFORM = "uniform"
    BOOKS = "books"
    OTHER = "other"
    # Combined fee; no split into components is performed
    TRANSPORTATION_AND_TUITION = "transportation_and_tuition"


class PaymentMethod(StrEnum):
    """Payment method options."""

    CASH = "cash"
    VISA = "visa"
    CHECK = "check"
    BANK_TRANSFER = "bank-transfer"
    OTHER = "other"


class Fee(BaseModel):
    """
    Billable charge for a student.

    ``paid`` is cumulative; ``balance`` and ``status`` are derived from
    amount - discount - paid and refreshed by ``recalculate``.
    """

    __tablename__ = "fees"
    __table_args__ = (
        UniqueConstraint(
            "school_id",
            "receipt_year",
            "receipt_number",
            name="uq_fees_school_receipt_year_number",
        ),
    )

    school_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Student reference (students are managed by the client application)
    student_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    grade: Mapped[str | None] = mapped_column(String(100), nullable=True)

    fee_type: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Amounts (Decimal with 2 decimal places)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    paid: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    balance: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.UNPAID.value, index=True
    )

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Assigned lazily on first payment/view, immutable afterwards
    receipt_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # Counter year the number was issued in; numbers repeat across years
    receipt_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Relationships
    school: Mapped["School"] = relationship("School", back_populates="fees")
    installments: Mapped[list["Installment"]] = relationship(
        "Installment",
        back_populates="fee",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def net_amount(self) -> Decimal:
        return net_amount(self.amount, self.discount)

    def recalculate(self) -> None:
        """Refresh balance and status from amount, discount and paid."""
        self.balance = balance_of(self.amount, self.discount, self.paid)
        self.status = compute_status(self.paid or 0, self.net_amount).value


class Installment(BaseModel):
    """Scheduled portion of a Fee."""

    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint(
            "school_id",
            "receipt_year",
            "receipt_number",
            name="uq_installments_school_receipt_year_number",
        ),
    )

    fee_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("fees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    school_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    balance: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.UNPAID.value, index=True
    )

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    installment_count: Mapped[int | None] = mapped_column(Integer, nullable=True)  # ordinal
    installment_month: Mapped[str | None] = mapped_column(String(50), nullable=True)

    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    receipt_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    receipt_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    fee: Mapped["Fee"] = relationship("Fee", back_populates="installments")

    def recalculate(self) -> None:
        """Refresh balance and status from amount and paid_amount."""
        self.balance = balance_of(self.amount, None, self.paid_amount)
        self.status = compute_status(self.paid_amount or 0, self.amount).value


# Import at the end to avoid circular imports
from src.core.school_settings.models import School  # noqa: E402
