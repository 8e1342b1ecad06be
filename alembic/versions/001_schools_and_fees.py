"""Schools, fees, installments and audit log

Revision ID: 001_schools_fees
Revises:
Create Date: 2026-09-14

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_schools_fees"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Schools with both receipt sequences
    op.create_table(
        "schools",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("english_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(100), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("receipt_number_prefix", sa.String(20), nullable=False, server_default=""),
        sa.Column("receipt_number_format", sa.String(30), nullable=False, server_default="auto"),
        sa.Column("receipt_number_counter", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("receipt_number_year", sa.Integer(), nullable=True),
        sa.Column(
            "installment_receipt_number_prefix", sa.String(20), nullable=False, server_default=""
        ),
        sa.Column(
            "installment_receipt_number_format",
            sa.String(30),
            nullable=False,
            server_default="auto",
        ),
        sa.Column(
            "installment_receipt_number_counter",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column("installment_receipt_number_year", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Fees
    op.create_table(
        "fees",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("school_id", sa.BigInteger(), nullable=False),
        sa.Column("student_id", sa.String(100), nullable=False),
        sa.Column("student_name", sa.String(255), nullable=False),
        sa.Column("grade", sa.String(100), nullable=True),
        sa.Column("fee_type", sa.String(40), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("discount", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("paid", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("balance", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("payment_note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_fees_school_id", "fees", ["school_id"])
    op.create_index("ix_fees_student_id", "fees", ["student_id"])
    op.create_index("ix_fees_fee_type", "fees", ["fee_type"])
    op.create_index("ix_fees_status", "fees", ["status"])

    # Installments
    op.create_table(
        "installments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("fee_id", sa.BigInteger(), nullable=False),
        sa.Column("school_id", sa.BigInteger(), nullable=False),
        sa.Column("student_id", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("balance", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("installment_count", sa.Integer(), nullable=True),
        sa.Column("installment_month", sa.String(50), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("payment_note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["fee_id"], ["fees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["school_id"], ["schools.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_installments_fee_id", "installments", ["fee_id"])
    op.create_index("ix_installments_school_id", "installments", ["school_id"])
    op.create_index("ix_installments_student_id", "installments", ["student_id"])
    op.create_index("ix_installments_status", "installments", ["status"])

    # Audit logs
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("school_id", sa.BigInteger(), nullable=True),
        sa.Column("actor", sa.String(200), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column("entity_identifier", sa.String(200), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_school_id", "audit_logs", ["school_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("installments")
    op.drop_table("fees")
    op.drop_table("schools")
