"""Scope receipt number uniqueness to the counter year

Counters reset every year, so "REC1" is issued again after a rollover.

Revision ID: 003_receipt_year
Revises: 002_receipt_numbers
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "003_receipt_year"
down_revision: Union[str, None] = "002_receipt_numbers"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("fees", sa.Column("receipt_year", sa.Integer(), nullable=True))
    op.add_column("installments", sa.Column("receipt_year", sa.Integer(), nullable=True))

    # Existing numbers were issued in the year currently stamped on the school counter
    op.execute(
        """
        UPDATE fees SET receipt_year = schools.receipt_number_year
        FROM schools
        WHERE fees.school_id = schools.id AND fees.receipt_number IS NOT NULL
        """
    )
    op.execute(
        """
        UPDATE installments SET receipt_year = schools.installment_receipt_number_year
        FROM schools
        WHERE installments.school_id = schools.id AND installments.receipt_number IS NOT NULL
        """
    )

    op.drop_constraint("uq_fees_school_receipt_number", "fees", type_="unique")
    op.drop_constraint("uq_installments_school_receipt_number", "installments", type_="unique")
    op.create_unique_constraint(
        "uq_fees_school_receipt_year_number",
        "fees",
        ["school_id", "receipt_year", "receipt_number"],
    )
    op.create_unique_constraint(
        "uq_installments_school_receipt_year_number",
        "installments",
        ["school_id", "receipt_year", "receipt_number"],
    )


def downgrade() -> None:
    op.drop_constraint(
        "uq_installments_school_receipt_year_number", "installments", type_="unique"
    )
    op.drop_constraint("uq_fees_school_receipt_year_number", "fees", type_="unique")
    op.create_unique_constraint(
        "uq_installments_school_receipt_number",
        "installments",
        ["school_id", "receipt_number"],
    )
    op.create_unique_constraint(
        "uq_fees_school_receipt_number", "fees", ["school_id", "receipt_number"]
    )
    op.drop_column("installments", "receipt_year")
    op.drop_column("fees", "receipt_year")
