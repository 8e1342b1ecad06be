"""API for schools and their receipt numbering settings."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import list_audit_entries
from src.core.database.session import get_db
from src.core.documents.counter_store import SqlCounterStore
from src.core.documents.models import ReceiptDocumentType
from src.core.documents.number_generator import ReceiptNumberGenerator
from src.core.school_settings.schemas import (
    ReceiptNumberPreview,
    ReceiptSettingsResponse,
    ReceiptSettingsUpdate,
    SchoolCreate,
    SchoolResponse,
)
from src.core.school_settings.service import (
    create_school,
    get_school,
    receipt_settings_of,
    update_receipt_settings,
)
from src.shared.schemas.base import ApiResponse, AuditEntryResponse, PaginatedResponse

router = APIRouter(prefix="/schools", tags=["Schools"])


@router.post(
    "",
    response_model=ApiResponse[SchoolResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create(
    data: SchoolCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a school with its fee and installment receipt sequences."""
    school = await create_school(db, data)
    await db.commit()
    return ApiResponse(
        data=SchoolResponse.model_validate(school),
        message="School created",
    )


@router.get("/{school_id}", response_model=ApiResponse[SchoolResponse])
async def get(
    school_id: int,
    db: AsyncSession = Depends(get_db),
):
    school = await get_school(db, school_id)
    return ApiResponse(data=SchoolResponse.model_validate(school))


@router.get("/{school_id}/receipt-settings", response_model=ApiResponse[ReceiptSettingsResponse])
async def get_receipt_settings(
    school_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Prefix, format, last issued counter and year of both receipt sequences."""
    school = await get_school(db, school_id)
    return ApiResponse(data=receipt_settings_of(school))


@router.put("/{school_id}/receipt-settings", response_model=ApiResponse[ReceiptSettingsResponse])
async def put_receipt_settings(
    school_id: int,
    data: ReceiptSettingsUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update receipt settings (only provided fields)."""
    school = await update_receipt_settings(db, school_id, data)
    await db.commit()
    return ApiResponse(
        message="Receipt settings updated",
        data=receipt_settings_of(school),
    )


@router.get(
    "/{school_id}/receipt-settings/preview",
    response_model=ApiResponse[ReceiptNumberPreview],
)
async def preview_receipt_number(
    school_id: int,
    document_type: ReceiptDocumentType = Query(ReceiptDocumentType.FEE),
    db: AsyncSession = Depends(get_db),
):
    """Next receipt number as it would be issued now. Does not consume it."""
    await get_school(db, school_id)
    generator = ReceiptNumberGenerator(SqlCounterStore(db))
    preview = await generator.preview_receipt_number(school_id, document_type)
    return ApiResponse(
        data=ReceiptNumberPreview(
            school_id=school_id,
            document_type=document_type,
            receipt_number=preview.full,
            sequence=preview.sequence,
            year=preview.year,
        )
    )


@router.get(
    "/{school_id}/audit-log",
    response_model=ApiResponse[PaginatedResponse[AuditEntryResponse]],
)
async def get_audit_log(
    school_id: int,
    entity_type: str | None = Query(None),
    action: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Audit trail of a school: payments, receipt assignments, settings changes."""
    await get_school(db, school_id)
    entries, total = await list_audit_entries(
        db,
        school_id=school_id,
        entity_type=entity_type,
        action=action,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[AuditEntryResponse.model_validate(e) for e in entries],
            total=total,
            page=page,
            limit=limit,
        )
    )
