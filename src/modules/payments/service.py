"""Service for recording payments against fees."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.documents.models import ReceiptDocumentType
from src.modules.fees.models import Fee
from src.modules.fees.schemas import FeeDetailResponse
from src.modules.fees.service import FeeService, ordered_installments
from src.modules.payments.distribution import (
    DistributionResult,
    InstallmentInput,
    calculate_fee_from_installments,
    distribute_payment,
)
from src.modules.payments.schemas import (
    InstallmentAllocationResponse,
    PaymentCreate,
    PaymentResult,
)
from src.shared.utils.money import round_money

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for applying payments to fees and their installments."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.fees = FeeService(db)

    async def record_payment(self, fee_id: int, data: PaymentCreate) -> PaymentResult:
        """
        Apply a payment to a fee.

        Fees with installments: the amount is distributed earliest-due-first
        and the fee's paid/balance/status are recomputed from the installments.
        Fees without installments take the payment directly. Every fee or
        installment that received money gets its receipt number (reserved on
        first use). Over-payment is reported as unallocated and not stored.
        """
        fee = await self.fees.get_fee_by_id(fee_id, for_update=True)
        payment_date = data.payment_date or date.today()

        if fee.installments:
            distribution = await self._pay_installments(fee, data, payment_date)
        else:
            distribution = self._pay_fee(fee, data.amount)

        if distribution.allocated_total > 0:
            fee.payment_date = payment_date
            fee.payment_method = data.payment_method.value
            if data.note:
                fee.payment_note = data.note
        await self.db.flush()

        fee_receipt_number: str | None = fee.receipt_number
        allocations: list[InstallmentAllocationResponse] = []
        by_id = {inst.id: inst for inst in fee.installments}

        if distribution.allocated_total > 0:
            fee_receipt_number = (
                await self.fees.ensure_receipt_number(fee, ReceiptDocumentType.FEE, data.actor)
            ).full

        if fee.installments:
            for item in distribution.changed:
                installment = by_id[item.id]
                receipt_number = await self.fees.ensure_receipt_number(
                    installment, ReceiptDocumentType.INSTALLMENT, data.actor
                )
                allocations.append(
                    InstallmentAllocationResponse(
                        installment_id=item.id,
                        allocated=item.allocated,
                        paid_amount=item.paid_amount,
                        balance=item.balance,
                        status=item.status,
                        receipt_number=receipt_number.full,
                    )
                )

        if distribution.unallocated > 0:
            logger.warning(
                "Payment on fee %s exceeds outstanding balance by %s",
                fee.id,
                distribution.unallocated,
            )

        await self.audit.log(
            action=AuditAction.RECORD_PAYMENT,
            entity_type="Fee",
            entity_id=fee.id,
            school_id=fee.school_id,
            actor=data.actor,
            entity_identifier=fee_receipt_number,
            new_values={
                "amount": str(round_money(data.amount)),
                "allocated": str(distribution.allocated_total),
                "unallocated": str(distribution.unallocated),
                "payment_method": data.payment_method.value,
                "installments": [a.installment_id for a in allocations],
                "paid": str(fee.paid),
                "status": fee.status,
            },
        )

        await self.db.commit()
        logger.info(
            "Recorded payment of %s on fee %s (status %s)", data.amount, fee.id, fee.status
        )

        fee = await self.fees.get_fee_by_id(fee.id)
        return PaymentResult(
            fee=FeeDetailResponse.model_validate(fee),
            amount=round_money(data.amount),
            allocated_total=distribution.allocated_total,
            unallocated=distribution.unallocated,
            fee_receipt_number=fee_receipt_number,
            allocations=allocations,
        )

    async def _pay_installments(
        self, fee: Fee, data: PaymentCreate, payment_date: date
    ) -> DistributionResult:
        ordered = ordered_installments(fee.installments)
        distribution = distribute_payment(data.amount, ordered)

        by_id = {inst.id: inst for inst in ordered}
        for item in distribution.installments:
            installment = by_id[item.id]
            installment.paid_amount = item.paid_amount
            installment.balance = item.balance
            installment.status = item.status.value
            if item.allocated > 0:
                installment.paid_date = payment_date
                installment.payment_method = data.payment_method.value
                if data.note:
                    installment.payment_note = data.note

        totals = calculate_fee_from_installments(fee.amount, fee.discount, fee.installments)
        fee.paid = totals.total_paid
        fee.recalculate()
        return distribution

    def _pay_fee(self, fee: Fee, amount: Decimal) -> DistributionResult:
        distribution = distribute_payment(
            amount,
            [InstallmentInput(id=fee.id, amount=fee.net_amount, paid_amount=fee.paid)],
        )
        fee.paid = distribution.total_paid
        fee.recalculate()
        return distribution
