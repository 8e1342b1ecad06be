"""Tests for migrating [RN:...] note tags into receipt_number."""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog
from src.core.audit.service import AuditAction
from src.core.school_settings.models import School
from src.modules.fees.legacy import backfill_legacy_receipt_numbers
from src.modules.fees.models import Fee, FeeType
from src.modules.fees.receipts import extract_legacy_receipt_number, strip_legacy_receipt_tag


def _fee(school_id: int, note: str | None, receipt_number: str | None = None) -> Fee:
    fee = Fee(
        school_id=school_id,
        student_id="STU-1",
        student_name="Hana",
        fee_type=FeeType.TUITION.value,
        amount=Decimal("100.00"),
        discount=Decimal("0.00"),
        paid=Decimal("100.00"),
        payment_note=note,
        receipt_number=receipt_number,
    )
    fee.recalculate()
    return fee


class TestLegacyTagHelpers:
    """Tests for [RN:...] tag parsing."""

    def test_extract(self):
        assert extract_legacy_receipt_number("Paid cash [RN:REC12]") == "REC12"
        assert extract_legacy_receipt_number("[RN: 228/2025 ] ok") == "228/2025"
        assert extract_legacy_receipt_number("no tag here") is None
        assert extract_legacy_receipt_number(None) is None

    def test_strip(self):
        assert strip_legacy_receipt_tag("Paid cash [RN:REC12]") == "Paid cash"
        assert strip_legacy_receipt_tag("[RN:REC12]") is None
        assert strip_legacy_receipt_tag(None) is None


class TestBackfill:
    """Tests for backfill_legacy_receipt_numbers."""

    async def test_moves_tags_and_raises_counter(self, db_session: AsyncSession, school):
        school_id = school.id
        db_session.add_all(
            [
                _fee(school_id, "first [RN:REC7]"),
                _fee(school_id, "[RN:REC12]"),
                _fee(school_id, "plain note"),
            ]
        )
        await db_session.commit()

        report = await backfill_legacy_receipt_numbers(db_session, school_id=school_id)
        await db_session.commit()

        assert report.scanned == 2
        assert report.assigned == 2
        assert report.conflicts == []
        assert report.counters_raised == {f"{school_id}:fee": 12}

        rows = (
            await db_session.execute(
                select(Fee.receipt_number, Fee.payment_note).order_by(Fee.id)
            )
        ).all()
        assert [tuple(r) for r in rows] == [
            ("REC7", "first"),
            ("REC12", None),
            (None, "plain note"),
        ]
        counter = (
            await db_session.execute(
                select(School.receipt_number_counter).where(School.id == school_id)
            )
        ).scalar_one()
        assert counter == 12

        entries = (
            await db_session.execute(
                select(AuditLog).where(
                    AuditLog.action == AuditAction.BACKFILL_RECEIPT_NUMBER.value
                )
            )
        ).scalars().all()
        assert len(entries) == 2

    async def test_never_overwrites_existing_number(self, db_session: AsyncSession, school):
        db_session.add(_fee(school.id, "[RN:REC3]", receipt_number="REC9"))
        await db_session.commit()

        report = await backfill_legacy_receipt_numbers(db_session)

        assert report.assigned == 0
        assert len(report.conflicts) == 1
        stored = (await db_session.execute(select(Fee.receipt_number))).scalar_one()
        assert stored == "REC9"

    async def test_duplicate_number_is_conflict(self, db_session: AsyncSession, school):
        db_session.add_all([_fee(school.id, "[RN:REC5]"), _fee(school.id, "again [RN:REC5]")])
        await db_session.commit()

        report = await backfill_legacy_receipt_numbers(db_session)

        assert report.assigned == 1
        assert len(report.conflicts) == 1
        assert "already used" in report.conflicts[0]

    async def test_number_from_prior_year_is_not_a_conflict(
        self, db_session: AsyncSession, school
    ):
        school.receipt_number_year = 2025
        old = _fee(school.id, None, receipt_number="REC5")
        old.receipt_year = 2024
        tagged = _fee(school.id, "[RN:REC5]")
        db_session.add_all([old, tagged])
        await db_session.commit()
        tagged_id = tagged.id

        report = await backfill_legacy_receipt_numbers(db_session)
        await db_session.commit()

        assert report.assigned == 1
        assert report.conflicts == []
        stored = (
            await db_session.execute(
                select(Fee.receipt_number, Fee.receipt_year).where(Fee.id == tagged_id)
            )
        ).one()
        assert tuple(stored) == ("REC5", 2025)

    async def test_rerun_is_idempotent(self, db_session: AsyncSession, school):
        db_session.add(_fee(school.id, "[RN:REC2]"))
        await db_session.commit()

        await backfill_legacy_receipt_numbers(db_session)
        await db_session.commit()
        report = await backfill_legacy_receipt_numbers(db_session)

        assert report.scanned == 0
        assert report.assigned == 0
