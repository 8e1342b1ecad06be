from src.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    ReservationFailedError,
    ConcurrentAssignmentLostError,
    InvalidPaymentAmountError,
    StatusComputationInputError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "ReservationFailedError",
    "ConcurrentAssignmentLostError",
    "InvalidPaymentAmountError",
    "StatusComputationInputError",
]
