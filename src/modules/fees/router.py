"""API endpoints for Fees module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.core.documents.models import ReceiptDocumentType
from src.core.documents.number_generator import ReceiptNumber
from src.modules.fees.models import FeeType
from src.modules.fees.schemas import (
    FeeCreate,
    FeeDetailResponse,
    FeeFilters,
    FeeResponse,
    ReceiptNumberResponse,
    ReconciliationResult,
)
from src.modules.fees.service import FeeService
from src.shared.schemas.base import ApiResponse, PaginatedResponse
from src.shared.utils.payment_status import PaymentStatus

router = APIRouter(prefix="/fees", tags=["Fees"])
installments_router = APIRouter(prefix="/installments", tags=["Fees"])


def _receipt_response(
    record_id: int, document_type: ReceiptDocumentType, receipt_number: ReceiptNumber
) -> ReceiptNumberResponse:
    return ReceiptNumberResponse(
        record_id=record_id,
        document_type=document_type,
        receipt_number=receipt_number.full,
        prefix=receipt_number.prefix,
        sequence=receipt_number.sequence,
        year=receipt_number.year,
    )


@router.post(
    "",
    response_model=ApiResponse[FeeDetailResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_fee(
    data: FeeCreate,
    actor: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Create a fee with an optional installment plan."""
    service = FeeService(db)
    fee = await service.create_fee(data, actor)
    return ApiResponse(
        data=FeeDetailResponse.model_validate(fee),
        message="Fee created",
    )


@router.get("", response_model=ApiResponse[PaginatedResponse[FeeResponse]])
async def list_fees(
    school_id: int = Query(...),
    student_id: str | None = Query(None),
    fee_status: PaymentStatus | None = Query(None, alias="status"),
    fee_type: FeeType | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List fees of a school with optional filters."""
    filters = FeeFilters(
        school_id=school_id,
        student_id=student_id,
        status=fee_status,
        fee_type=fee_type,
        page=page,
        limit=limit,
    )
    service = FeeService(db)
    fees, total = await service.list_fees(filters)
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[FeeResponse.model_validate(f) for f in fees],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.post("/reconcile", response_model=ApiResponse[ReconciliationResult])
async def reconcile_fees(
    school_id: int = Query(...),
    dry_run: bool = Query(False),
    actor: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Recompute paid/balance/status of a school's fees from their installments."""
    service = FeeService(db)
    result = await service.reconcile_school(school_id, dry_run=dry_run, actor=actor)
    return ApiResponse(
        data=result,
        message="Dry run, nothing saved" if dry_run else "Fees reconciled",
    )


@router.get("/{fee_id}", response_model=ApiResponse[FeeDetailResponse])
async def get_fee(
    fee_id: int,
    db: AsyncSession = Depends(get_db),
):
    service = FeeService(db)
    fee = await service.get_fee_by_id(fee_id)
    return ApiResponse(data=FeeDetailResponse.model_validate(fee))


@router.get("/{fee_id}/receipt", response_model=ApiResponse[ReceiptNumberResponse])
async def get_fee_receipt(
    fee_id: int,
    actor: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Receipt number of a fee. The first request reserves it; later ones return it unchanged."""
    service = FeeService(db)
    receipt_number = await service.get_fee_receipt(fee_id, actor)
    return ApiResponse(data=_receipt_response(fee_id, ReceiptDocumentType.FEE, receipt_number))


@installments_router.get(
    "/{installment_id}/receipt",
    response_model=ApiResponse[ReceiptNumberResponse],
)
async def get_installment_receipt(
    installment_id: int,
    actor: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Receipt number of an installment, reserved on first request."""
    service = FeeService(db)
    receipt_number = await service.get_installment_receipt(installment_id, actor)
    return ApiResponse(
        data=_receipt_response(installment_id, ReceiptDocumentType.INSTALLMENT, receipt_number)
    )
