"""School model: tenant row carrying both receipt number sequences."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import BaseModel
from src.core.documents.models import ReceiptDocumentType, ReceiptNumberFormat


class School(BaseModel):
    """
    School (tenant boundary).

    Owns two independent receipt sequences, each a prefix/format/counter/year set:
    fee receipts (receipt_number_*) and installment receipts
    (installment_receipt_number_*). ``*_counter`` is the last issued sequence
    value; ``*_year`` is the year that counter belongs to (NULL = not stamped yet).
    """

    __tablename__ = "schools"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    english_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Fee receipts
    receipt_number_prefix: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    receipt_number_format: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ReceiptNumberFormat.AUTO.value
    )
    receipt_number_counter: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    receipt_number_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Installment receipts
    installment_receipt_number_prefix: Mapped[str] = mapped_column(
        String(20), nullable=False, default=""
    )
    installment_receipt_number_format: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ReceiptNumberFormat.AUTO.value
    )
    installment_receipt_number_counter: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    installment_receipt_number_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    fees: Mapped[list["Fee"]] = relationship(
        "Fee", back_populates="school", cascade="all, delete-orphan", passive_deletes=True
    )

    def sequence_settings(self, document_type: ReceiptDocumentType) -> dict:
        """Prefix/format/counter/year of one sequence, keyed without the column prefix."""
        column_prefix = counter_column_prefix(document_type)
        return {
            "prefix": getattr(self, f"{column_prefix}_prefix") or "",
            "format": getattr(self, f"{column_prefix}_format") or ReceiptNumberFormat.AUTO.value,
            "counter": getattr(self, f"{column_prefix}_counter") or 0,
            "year": getattr(self, f"{column_prefix}_year"),
        }


def counter_column_prefix(document_type: ReceiptDocumentType | str) -> str:
    """Column name prefix of the sequence for a document type."""
    if ReceiptDocumentType(document_type) == ReceiptDocumentType.INSTALLMENT:
        return "installment_receipt_number"
    return "receipt_number"


from src.modules.fees.models import Fee  # noqa: E402
