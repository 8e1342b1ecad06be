"""Receipt number columns on fees and installments

Numbers used to live in payment_note as "[RN:...]" tags; run
scripts/backfill_receipt_numbers_from_notes.py after upgrading.

Revision ID: 002_receipt_numbers
Revises: 001_schools_fees
Create Date: 2026-09-21

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "002_receipt_numbers"
down_revision: Union[str, None] = "001_schools_fees"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("fees", sa.Column("receipt_number", sa.String(50), nullable=True))
    op.add_column("installments", sa.Column("receipt_number", sa.String(50), nullable=True))
    op.create_unique_constraint(
        "uq_fees_school_receipt_number", "fees", ["school_id", "receipt_number"]
    )
    op.create_unique_constraint(
        "uq_installments_school_receipt_number",
        "installments",
        ["school_id", "receipt_number"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_installments_school_receipt_number", "installments", type_="unique")
    op.drop_constraint("uq_fees_school_receipt_number", "fees", type_="unique")
    op.drop_column("installments", "receipt_number")
    op.drop_column("fees", "receipt_number")
