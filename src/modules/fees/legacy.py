"""Migration of legacy ``[RN:...]`` note tags into the receipt_number column."""

import logging
from dataclasses import dataclass, field

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.documents.models import ReceiptDocumentType
from src.core.documents.number_generator import parse_receipt_number
from src.core.school_settings.models import School, counter_column_prefix
from src.modules.fees.models import Fee, Installment
from src.modules.fees.receipts import (
    SqlReceiptAssignmentStore,
    extract_legacy_receipt_number,
    strip_legacy_receipt_tag,
)

logger = logging.getLogger(__name__)


@dataclass
class LegacyBackfillReport:
    scanned: int = 0
    assigned: int = 0
    already_numbered: int = 0
    conflicts: list[str] = field(default_factory=list)
    # "<school_id>:<document_type>" -> new counter value
    counters_raised: dict[str, int] = field(default_factory=dict)


async def backfill_legacy_receipt_numbers(
    session: AsyncSession,
    school_id: int | None = None,
    actor: str | None = "backfill-script",
) -> LegacyBackfillReport:
    """
    Move receipt numbers tagged in payment notes onto the records.

    Each number is written with the same conditional write used for new
    numbers, so a record that already has a receipt number is never
    overwritten. Numbers already used elsewhere in the school are reported as
    conflicts and left in the note. Counters are raised to the highest
    migrated sequence of the counter's year so new numbers do not collide.
    Nothing is committed here.
    """
    report = LegacyBackfillReport()
    store = SqlReceiptAssignmentStore(session)
    audit = AuditService(session)
    schools: dict[int, School] = {}
    highest: dict[tuple[int, ReceiptDocumentType], int] = {}

    async def load_school(sid: int) -> School:
        if sid not in schools:
            schools[sid] = await session.get(School, sid, with_for_update=True)
        return schools[sid]

    # Fee rows, then installment rows, then schools: same lock order as payments
    tagged: list[tuple[ReceiptDocumentType, type, list]] = []
    for document_type, model in (
        (ReceiptDocumentType.FEE, Fee),
        (ReceiptDocumentType.INSTALLMENT, Installment),
    ):
        query = (
            select(model)
            .where(model.payment_note.like("%[RN:%"))
            .order_by(model.id)
            .with_for_update()
        )
        if school_id is not None:
            query = query.where(model.school_id == school_id)
        records = list((await session.execute(query)).scalars().all())
        tagged.append((document_type, model, records))

    for document_type, model, records in tagged:
        for record in records:
            number = extract_legacy_receipt_number(record.payment_note)
            if not number:
                continue
            report.scanned += 1
            label = f"{document_type.value} {record.id}"

            if record.receipt_number:
                if record.receipt_number == number:
                    report.already_numbered += 1
                    record.payment_note = strip_legacy_receipt_tag(record.payment_note)
                else:
                    report.conflicts.append(
                        f"{label}: has {record.receipt_number}, note says {number}"
                    )
                continue

            school = await load_school(record.school_id)
            sequence_settings = school.sequence_settings(document_type)
            parsed = parse_receipt_number(
                number, sequence_settings["prefix"], sequence_settings["format"]
            )
            stored_year = sequence_settings["year"]
            # Numbers without a year in their text belong to the current counter year
            receipt_year = parsed.year if parsed.year is not None else stored_year

            clash = [
                model.school_id == record.school_id,
                model.receipt_number == number,
                model.id != record.id,
            ]
            if receipt_year is not None:
                clash.append(
                    or_(model.receipt_year == receipt_year, model.receipt_year.is_(None))
                )
            taken = (await session.execute(select(model.id).where(*clash))).first()
            if taken:
                report.conflicts.append(f"{label}: {number} already used by id {taken[0]}")
                continue

            if not await store.conditional_set_receipt_number(
                record.id, document_type, number, receipt_year
            ):
                report.conflicts.append(f"{label}: numbered concurrently")
                continue

            record.receipt_number = number
            record.receipt_year = receipt_year
            record.payment_note = strip_legacy_receipt_tag(record.payment_note)
            report.assigned += 1
            await audit.log(
                action=AuditAction.BACKFILL_RECEIPT_NUMBER,
                entity_type="Fee" if document_type == ReceiptDocumentType.FEE else "Installment",
                entity_id=record.id,
                school_id=record.school_id,
                actor=actor,
                entity_identifier=number,
                new_values={"receipt_number": number},
            )

            if parsed.sequence is None:
                continue
            if stored_year is not None and parsed.year is not None and parsed.year != stored_year:
                continue
            key = (record.school_id, document_type)
            highest[key] = max(highest.get(key, 0), parsed.sequence)

    for (sid, document_type), sequence in highest.items():
        school = schools[sid]
        counter_attr = f"{counter_column_prefix(document_type)}_counter"
        if sequence > (getattr(school, counter_attr) or 0):
            setattr(school, counter_attr, sequence)
            report.counters_raised[f"{sid}:{document_type.value}"] = sequence

    await session.flush()
    logger.info(
        "Legacy receipt backfill: %s scanned, %s assigned, %s conflicts",
        report.scanned,
        report.assigned,
        len(report.conflicts),
    )
    return report
