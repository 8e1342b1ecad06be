"""Service for schools and their receipt numbering settings."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.documents.models import ReceiptDocumentType
from src.core.exceptions import NotFoundError
from src.core.school_settings.models import School, counter_column_prefix
from src.core.school_settings.schemas import (
    ReceiptSequenceSettings,
    ReceiptSettingsResponse,
    ReceiptSettingsUpdate,
    SchoolCreate,
)

logger = logging.getLogger(__name__)


def _default_sequence(document_type: ReceiptDocumentType) -> ReceiptSequenceSettings:
    if document_type == ReceiptDocumentType.INSTALLMENT:
        return ReceiptSequenceSettings(
            prefix=settings.default_installment_receipt_number_prefix,
            format=settings.default_installment_receipt_number_format,
        )
    return ReceiptSequenceSettings(
        prefix=settings.default_receipt_number_prefix,
        format=settings.default_receipt_number_format,
    )


def _apply_sequence(school: School, document_type: ReceiptDocumentType, values: dict) -> None:
    column_prefix = counter_column_prefix(document_type)
    for key, value in values.items():
        if key == "format" and value is not None:
            value = value.value if hasattr(value, "value") else value
        setattr(school, f"{column_prefix}_{key}", value)


async def create_school(db: AsyncSession, data: SchoolCreate) -> School:
    """Create a school with both receipt sequences."""
    school = School(
        name=data.name,
        english_name=data.english_name,
        email=data.email,
        phone=data.phone,
        address=data.address,
    )
    for document_type, sequence in (
        (ReceiptDocumentType.FEE, data.fee_receipts),
        (ReceiptDocumentType.INSTALLMENT, data.installment_receipts),
    ):
        sequence = sequence or _default_sequence(document_type)
        _apply_sequence(school, document_type, sequence.model_dump())
    db.add(school)
    await db.flush()

    await AuditService(db).log(
        action=AuditAction.CREATE,
        entity_type="School",
        entity_id=school.id,
        school_id=school.id,
        entity_identifier=school.name,
    )
    await db.refresh(school)
    logger.info("Created school %s (%s)", school.id, school.name)
    return school


async def get_school(db: AsyncSession, school_id: int) -> School:
    """Get a school or raise NotFoundError."""
    result = await db.execute(select(School).where(School.id == school_id))
    school = result.scalar_one_or_none()
    if school is None:
        raise NotFoundError("School", school_id)
    return school


def receipt_settings_of(school: School) -> ReceiptSettingsResponse:
    return ReceiptSettingsResponse(
        school_id=school.id,
        fee_receipts=ReceiptSequenceSettings(**school.sequence_settings(ReceiptDocumentType.FEE)),
        installment_receipts=ReceiptSequenceSettings(
            **school.sequence_settings(ReceiptDocumentType.INSTALLMENT)
        ),
    )


async def update_receipt_settings(
    db: AsyncSession,
    school_id: int,
    data: ReceiptSettingsUpdate,
) -> School:
    """
    Update receipt settings (only provided fields).

    Counter moves are audited with old and new values.
    """
    school = await get_school(db, school_id)
    old_values: dict = {}
    new_values: dict = {}
    for document_type, sequence in (
        (ReceiptDocumentType.FEE, data.fee_receipts),
        (ReceiptDocumentType.INSTALLMENT, data.installment_receipts),
    ):
        if sequence is None:
            continue
        changes = sequence.model_dump(exclude_unset=True)
        if not changes:
            continue
        before = school.sequence_settings(document_type)
        old_values[document_type.value] = {key: before[key] for key in changes}
        _apply_sequence(school, document_type, changes)
        new_values[document_type.value] = {
            key: (value.value if hasattr(value, "value") else value)
            for key, value in changes.items()
        }

    await db.flush()
    if new_values:
        await AuditService(db).log(
            action=AuditAction.UPDATE_RECEIPT_SETTINGS,
            entity_type="School",
            entity_id=school.id,
            school_id=school.id,
            entity_identifier=school.name,
            old_values=old_values,
            new_values=new_values,
        )
    await db.refresh(school)
    return school
