"""API endpoints for Payments module."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.modules.payments.schemas import PaymentCreate, PaymentResult
from src.modules.payments.service import PaymentService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/fees", tags=["Payments"])


@router.post(
    "/{fee_id}/payments",
    response_model=ApiResponse[PaymentResult],
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    fee_id: int,
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
):
    """Record a payment on a fee; installments are paid earliest-due first."""
    service = PaymentService(db)
    result = await service.record_payment(fee_id, data)
    message = "Payment recorded"
    if result.unallocated > 0:
        message = f"Payment recorded; {result.unallocated} exceeded the outstanding balance"
    return ApiResponse(data=result, message=message)
