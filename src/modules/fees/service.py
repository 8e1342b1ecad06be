"""Service for Fees module."""

import calendar
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.documents.models import ReceiptDocumentType
from src.core.documents.number_generator import ReceiptNumber
from src.core.exceptions import NotFoundError, ValidationError
from src.core.school_settings.service import get_school
from src.modules.fees.models import Fee, Installment
from src.modules.fees.receipts import receipt_number_generator
from src.modules.fees.schemas import (
    FeeCreate,
    FeeFilters,
    FeeReconciliationEntry,
    InstallmentCreate,
    ReconciliationResult,
)
from src.modules.payments.distribution import calculate_fee_from_installments
from src.shared.utils.money import round_money, split_money, sum_money

logger = logging.getLogger(__name__)


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def ordered_installments(installments: list[Installment]) -> list[Installment]:
    """Earliest due first (no due date last), then ordinal, then id."""
    return sorted(
        installments,
        key=lambda inst: (
            inst.due_date is None,
            inst.due_date or date.min,
            inst.installment_count or 0,
            inst.id or 0,
        ),
    )


class FeeService:
    """Service for fees, installment plans and their receipt numbers."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    # --- Fees ---

    def _installment_plan(self, data: FeeCreate) -> list[InstallmentCreate]:
        if data.installments is not None:
            return data.installments
        if not data.installment_count:
            return []
        net = round_money(data.amount - data.discount)
        plan = []
        for index, amount in enumerate(split_money(net, data.installment_count)):
            due = add_months(data.due_date, index) if data.due_date else None
            plan.append(
                InstallmentCreate(
                    amount=amount,
                    due_date=due,
                    installment_month=due.strftime("%B %Y") if due else None,
                )
            )
        return plan

    async def create_fee(self, data: FeeCreate, actor: str | None = None) -> Fee:
        """Create a fee and its installment plan."""
        await get_school(self.db, data.school_id)

        fee = Fee(
            school_id=data.school_id,
            student_id=data.student_id,
            student_name=data.student_name,
            grade=data.grade,
            fee_type=data.fee_type.value,
            description=data.description,
            amount=round_money(data.amount),
            discount=round_money(data.discount),
            paid=Decimal("0.00"),
            due_date=data.due_date,
        )

        plan = self._installment_plan(data)
        for ordinal, item in enumerate(plan, start=1):
            if item.paid_amount > item.amount:
                raise ValidationError(
                    f"Installment {ordinal} paid amount exceeds its amount",
                    field="installments",
                )
            installment = Installment(
                school_id=data.school_id,
                student_id=data.student_id,
                amount=round_money(item.amount),
                paid_amount=round_money(item.paid_amount),
                due_date=item.due_date,
                installment_count=ordinal,
                installment_month=item.installment_month,
            )
            installment.recalculate()
            fee.installments.append(installment)

        if plan:
            plan_total = sum_money(i.amount for i in fee.installments)
            if plan_total != fee.net_amount:
                logger.warning(
                    "Installment plan total %s differs from net amount %s for student %s",
                    plan_total,
                    fee.net_amount,
                    data.student_id,
                )
            fee.paid = calculate_fee_from_installments(
                fee.amount, fee.discount, fee.installments
            ).total_paid
        fee.recalculate()

        self.db.add(fee)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.CREATE,
            entity_type="Fee",
            entity_id=fee.id,
            school_id=fee.school_id,
            actor=actor,
            new_values={
                "student_id": fee.student_id,
                "fee_type": fee.fee_type,
                "amount": str(fee.amount),
                "discount": str(fee.discount),
                "installments": len(plan),
            },
        )

        await self.db.commit()
        return await self.get_fee_by_id(fee.id)

    async def get_fee_by_id(self, fee_id: int, for_update: bool = False) -> Fee:
        """Get fee by ID with installments loaded."""
        query = (
            select(Fee)
            .where(Fee.id == fee_id)
            .options(selectinload(Fee.installments))
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        fee = result.scalar_one_or_none()
        if not fee:
            raise NotFoundError("Fee", fee_id)
        return fee

    async def get_installment_by_id(self, installment_id: int) -> Installment:
        result = await self.db.execute(
            select(Installment)
            .where(Installment.id == installment_id)
            .execution_options(populate_existing=True)
        )
        installment = result.scalar_one_or_none()
        if not installment:
            raise NotFoundError("Installment", installment_id)
        return installment

    async def list_fees(self, filters: FeeFilters) -> tuple[list[Fee], int]:
        """List fees of a school with filters."""
        query = select(Fee).where(Fee.school_id == filters.school_id)

        if filters.student_id:
            query = query.where(Fee.student_id == filters.student_id)
        if filters.status:
            query = query.where(Fee.status == filters.status.value)
        if filters.fee_type:
            query = query.where(Fee.fee_type == filters.fee_type.value)

        # Count total
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        # Paginate
        query = query.order_by(Fee.created_at.desc(), Fee.id.desc())
        query = query.offset((filters.page - 1) * filters.limit).limit(filters.limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    # --- Receipts ---

    async def ensure_receipt_number(
        self,
        record: Fee | Installment,
        document_type: ReceiptDocumentType,
        actor: str | None,
    ) -> ReceiptNumber:
        """Existing receipt number of the record, or a newly reserved and audited one."""
        had_number = bool(record.receipt_number)
        generator = receipt_number_generator(self.db)
        receipt_number = await generator.get_or_reserve_receipt_number(
            record, record.school_id, document_type
        )
        if not had_number:
            await self.audit.log(
                action=AuditAction.ASSIGN_RECEIPT_NUMBER,
                entity_type="Fee" if document_type == ReceiptDocumentType.FEE else "Installment",
                entity_id=record.id,
                school_id=record.school_id,
                actor=actor,
                entity_identifier=receipt_number.full,
                new_values={"receipt_number": receipt_number.full},
            )
        return receipt_number

    async def get_fee_receipt(self, fee_id: int, actor: str | None = None) -> ReceiptNumber:
        """Receipt number for viewing/printing a fee receipt. Reserved only on first view."""
        fee = await self.get_fee_by_id(fee_id, for_update=True)
        receipt_number = await self.ensure_receipt_number(fee, ReceiptDocumentType.FEE, actor)
        await self.db.commit()
        return receipt_number

    async def get_installment_receipt(
        self, installment_id: int, actor: str | None = None
    ) -> ReceiptNumber:
        """Receipt number for viewing/printing an installment receipt."""
        fee_id = (
            await self.db.execute(
                select(Installment.fee_id).where(Installment.id == installment_id)
            )
        ).scalar_one_or_none()
        if fee_id is None:
            raise NotFoundError("Installment", installment_id)
        # Owning fee first, as in record_payment
        await self.get_fee_by_id(fee_id, for_update=True)
        installment = await self.get_installment_by_id(installment_id)
        receipt_number = await self.ensure_receipt_number(
            installment, ReceiptDocumentType.INSTALLMENT, actor
        )
        await self.db.commit()
        return receipt_number

    # --- Reconciliation ---

    async def reconcile_school(
        self,
        school_id: int,
        dry_run: bool = False,
        actor: str | None = None,
    ) -> ReconciliationResult:
        """
        Recompute paid/balance/status of every fee of a school.

        Fees with installments take paid from the installments; every fee and
        installment gets balance/status recomputed. Plans whose installment sum
        differs from the fee's net amount are reported, not changed.
        """
        await get_school(self.db, school_id)
        result = await self.db.execute(
            select(Fee)
            .where(Fee.school_id == school_id)
            .options(selectinload(Fee.installments))
            .order_by(Fee.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        fees = list(result.scalars().all())

        entries: list[FeeReconciliationEntry] = []
        mismatches: list[int] = []
        for fee in fees:
            old_paid = fee.paid
            old_status = fee.status
            old_balance = fee.balance
            installments_total = sum_money(i.amount for i in fee.installments)

            for installment in fee.installments:
                installment.recalculate()
            if fee.installments:
                fee.paid = calculate_fee_from_installments(
                    fee.amount, fee.discount, fee.installments
                ).total_paid
                if installments_total != fee.net_amount:
                    mismatches.append(fee.id)
            fee.recalculate()

            if (fee.paid, fee.status, fee.balance) != (old_paid, old_status, old_balance):
                entries.append(
                    FeeReconciliationEntry(
                        fee_id=fee.id,
                        old_paid=old_paid,
                        new_paid=fee.paid,
                        old_status=old_status,
                        new_status=fee.status,
                        installments_total=installments_total,
                        net_amount=fee.net_amount,
                    )
                )

        reconciliation = ReconciliationResult(
            school_id=school_id,
            fees_checked=len(fees),
            fees_updated=len(entries),
            plan_mismatches=mismatches,
            entries=entries,
        )

        if dry_run:
            await self.db.rollback()
            return reconciliation

        await self.audit.log(
            action=AuditAction.RECONCILE_FEES,
            entity_type="School",
            entity_id=school_id,
            school_id=school_id,
            actor=actor,
            new_values={
                "fees_checked": len(fees),
                "fees_updated": len(entries),
                "plan_mismatches": mismatches,
            },
        )
        await self.db.commit()
        logger.info(
            "Reconciled school %s: %s/%s fees updated", school_id, len(entries), len(fees)
        )
        return reconciliation
