from enum import StrEnum


class ReceiptDocumentType(StrEnum):
    """Document types with independent receipt number sequences."""

    FEE = "fee"
    INSTALLMENT = "installment"


class ReceiptNumberFormat(StrEnum):
    """
    How a reserved sequence value is rendered.

    auto / custom        -> PREFIX + N      (REC228)
    sequential           -> N               (228)
    student-sequential   -> N               (228)
    year                 -> N/YYYY          (228/2025)
    short-year           -> N/YY            (228/25)
    """

    AUTO = "auto"
    CUSTOM = "custom"
    SEQUENTIAL = "sequential"
    STUDENT_SEQUENTIAL = "student-sequential"
    YEAR = "year"
    SHORT_YEAR = "short-year"
