"""Tests for Payments module."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog
from src.core.audit.service import AuditAction
from src.core.exceptions import InvalidPaymentAmountError, NotFoundError
from src.core.school_settings.models import School
from src.modules.fees.models import Fee, FeeType, Installment, PaymentMethod
from src.modules.fees.schemas import FeeCreate, InstallmentCreate
from src.modules.fees.service import FeeService
from src.modules.payments.schemas import PaymentCreate
from src.modules.payments.service import PaymentService
from src.shared.utils.payment_status import PaymentStatus


async def _fee_with_three_installments(db_session: AsyncSession, school_id: int):
    """1500 tuition fee in three 500 installments, created out of due-date order."""
    return await FeeService(db_session).create_fee(
        FeeCreate(
            school_id=school_id,
            student_id="STU-100",
            student_name="Sara Ali",
            fee_type=FeeType.TUITION,
            amount=Decimal("1500.00"),
            installments=[
                InstallmentCreate(amount=Decimal("500"), due_date=date(2025, 3, 1)),
                InstallmentCreate(amount=Decimal("500"), due_date=date(2025, 1, 1)),
                InstallmentCreate(amount=Decimal("500"), due_date=date(2025, 2, 1)),
            ],
        )
    )


async def _counters(db_session: AsyncSession, school_id: int) -> tuple[int, int]:
    row = (
        await db_session.execute(
            select(School.receipt_number_counter, School.installment_receipt_number_counter).where(
                School.id == school_id
            )
        )
    ).one()
    return row[0], row[1]


class TestPaymentService:
    """Tests for PaymentService."""

    async def test_payment_distributed_earliest_due_first(
        self, db_session: AsyncSession, school
    ):
        fee = await _fee_with_three_installments(db_session, school.id)
        service = PaymentService(db_session)

        result = await service.record_payment(
            fee.id, PaymentCreate(amount=Decimal("700"), payment_date=date(2025, 1, 5))
        )

        by_due = {i.due_date: i for i in result.fee.installments}
        assert by_due[date(2025, 1, 1)].status == PaymentStatus.PAID
        assert by_due[date(2025, 2, 1)].paid_amount == Decimal("200.00")
        assert by_due[date(2025, 2, 1)].status == PaymentStatus.PARTIAL
        assert by_due[date(2025, 3, 1)].status == PaymentStatus.UNPAID
        assert by_due[date(2025, 1, 1)].paid_date == date(2025, 1, 5)
        assert by_due[date(2025, 3, 1)].paid_date is None

        assert result.fee.paid == Decimal("700.00")
        assert result.fee.balance == Decimal("800.00")
        assert result.fee.status == PaymentStatus.PARTIAL
        assert result.allocated_total == Decimal("700.00")
        assert result.unallocated == Decimal("0.00")

        assert result.fee_receipt_number == "REC1"
        assert [a.receipt_number for a in result.allocations] == ["INST1", "INST2"]
        assert await _counters(db_session, school.id) == (1, 2)

    async def test_second_payment_reuses_existing_receipts(
        self, db_session: AsyncSession, school
    ):
        fee = await _fee_with_three_installments(db_session, school.id)
        service = PaymentService(db_session)
        await service.record_payment(fee.id, PaymentCreate(amount=Decimal("700")))

        result = await service.record_payment(fee.id, PaymentCreate(amount=Decimal("800")))

        assert result.fee.status == PaymentStatus.PAID
        assert result.fee.balance == Decimal("0.00")
        assert result.fee_receipt_number == "REC1"
        assert [a.receipt_number for a in result.allocations] == ["INST2", "INST3"]
        assert await _counters(db_session, school.id) == (1, 3)

    async def test_zero_payment_changes_nothing(self, db_session: AsyncSession, school):
        fee = await _fee_with_three_installments(db_session, school.id)
        service = PaymentService(db_session)

        result = await service.record_payment(fee.id, PaymentCreate(amount=Decimal("0")))

        assert result.fee.paid == Decimal("0.00")
        assert result.fee.status == PaymentStatus.UNPAID
        assert result.allocations == []
        assert result.fee_receipt_number is None
        assert await _counters(db_session, school.id) == (0, 0)

    async def test_payment_on_fee_without_installments(self, db_session: AsyncSession, school):
        fee = await FeeService(db_session).create_fee(
            FeeCreate(
                school_id=school.id,
                student_id="STU-7",
                student_name="Yusuf",
                fee_type=FeeType.UNIFORM,
                amount=Decimal("1000"),
                discount=Decimal("200"),
            )
        )
        service = PaymentService(db_session)

        partial = await service.record_payment(
            fee.id,
            PaymentCreate(amount=Decimal("300"), payment_method=PaymentMethod.VISA, note="first"),
        )
        assert partial.fee.paid == Decimal("300.00")
        assert partial.fee.status == PaymentStatus.PARTIAL
        assert partial.fee.payment_method == "visa"
        assert partial.fee.payment_note == "first"

        over = await service.record_payment(fee.id, PaymentCreate(amount=Decimal("700")))
        assert over.fee.paid == Decimal("800.00")
        assert over.fee.status == PaymentStatus.PAID
        assert over.unallocated == Decimal("200.00")
        assert over.fee_receipt_number == "REC1"

    async def test_negative_payment_rejected(self, db_session: AsyncSession, school):
        fee = await _fee_with_three_installments(db_session, school.id)
        with pytest.raises(InvalidPaymentAmountError):
            await PaymentService(db_session).record_payment(
                fee.id, PaymentCreate(amount=Decimal("-5"))
            )

    async def test_missing_fee(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await PaymentService(db_session).record_payment(
                999, PaymentCreate(amount=Decimal("5"))
            )

    async def test_payment_is_audited(self, db_session: AsyncSession, school):
        fee = await _fee_with_three_installments(db_session, school.id)
        await PaymentService(db_session).record_payment(
            fee.id, PaymentCreate(amount=Decimal("1600"), actor="cashier")
        )

        entry = (
            await db_session.execute(
                select(AuditLog).where(AuditLog.action == AuditAction.RECORD_PAYMENT.value)
            )
        ).scalar_one()
        assert entry.actor == "cashier"
        assert entry.school_id == school.id
        assert entry.new_values["allocated"] == "1500.00"
        assert entry.new_values["unallocated"] == "100.00"


class TestPaymentsAPI:
    """Tests for Payments API endpoints."""

    async def test_record_payment(self, client: AsyncClient, db_session: AsyncSession, school):
        fee = await _fee_with_three_installments(db_session, school.id)

        response = await client.post(
            f"/api/v1/fees/{fee.id}/payments",
            json={"amount": "700", "payment_method": "cash", "payment_date": "2025-01-05"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["fee"]["status"] == "partial"
        assert Decimal(data["fee"]["paid"]) == Decimal("700")
        assert data["fee_receipt_number"] == "REC1"
        assert len(data["allocations"]) == 2

    async def test_overpayment_message(self, client: AsyncClient, db_session: AsyncSession, school):
        fee = await _fee_with_three_installments(db_session, school.id)

        response = await client.post(f"/api/v1/fees/{fee.id}/payments", json={"amount": "1550"})

        assert response.status_code == 201
        assert Decimal(response.json()["data"]["unallocated"]) == Decimal("50")
        assert "exceeded" in response.json()["message"]

    async def test_payment_after_year_rollover_restarts_numbering(
        self, client: AsyncClient, db_session: AsyncSession, school
    ):
        this_year = datetime.now().year
        last_year = this_year - 1
        school_id = school.id
        old = await _fee_with_three_installments(db_session, school_id)
        new = await _fee_with_three_installments(db_session, school_id)
        old_id, new_id = old.id, new.id
        old_installment_id = min(i.id for i in old.installments)
        # Numbers REC1 and INST1 were already issued last year
        await db_session.execute(
            update(School)
            .where(School.id == school_id)
            .values(
                receipt_number_counter=227,
                receipt_number_year=last_year,
                installment_receipt_number_counter=480,
                installment_receipt_number_year=last_year,
            )
        )
        await db_session.execute(
            update(Fee)
            .where(Fee.id == old_id)
            .values(receipt_number="REC1", receipt_year=last_year)
        )
        await db_session.execute(
            update(Installment)
            .where(Installment.id == old_installment_id)
            .values(receipt_number="INST1", receipt_year=last_year)
        )
        await db_session.commit()

        response = await client.post(f"/api/v1/fees/{new_id}/payments", json={"amount": "500"})

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["fee_receipt_number"] == "REC1"
        assert [a["receipt_number"] for a in data["allocations"]] == ["INST1"]
        assert data["fee"]["receipt_year"] == this_year
        assert await _counters(db_session, school_id) == (1, 1)

    async def test_negative_payment_returns_422(
        self, client: AsyncClient, db_session: AsyncSession, school
    ):
        fee = await _fee_with_three_installments(db_session, school.id)

        response = await client.post(f"/api/v1/fees/{fee.id}/payments", json={"amount": "-10"})

        assert response.status_code == 422
        assert response.json()["success"] is False

    async def test_payment_on_missing_fee_returns_404(self, client: AsyncClient):
        response = await client.post("/api/v1/fees/31337/payments", json={"amount": "10"})
        assert response.status_code == 404
