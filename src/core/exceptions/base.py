from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details)


class ReservationFailedError(AppException):
    """
    The atomic counter increment could not be performed.

    Raised when the store is unreachable, the school row is missing or the
    schema lacks a required column. Callers must not substitute a guessed number.
    """

    def __init__(
        self,
        school_id: Any,
        document_type: str,
        reason: str,
    ):
        message = f"Could not reserve {document_type} receipt number for school {school_id}: {reason}"
        super().__init__(
            message=message,
            status_code=503,
            details={"school_id": school_id, "document_type": document_type, "reason": reason},
        )


class ConcurrentAssignmentLostError(AppException):
    """Conditional write of a receipt number found the record already numbered."""

    def __init__(self, record_type: str, record_id: Any, attempted: str):
        message = (
            f"{record_type} {record_id} already has a receipt number; "
            f"{attempted} was not assigned"
        )
        super().__init__(
            message=message,
            status_code=409,
            details={"record_type": record_type, "record_id": record_id, "attempted": attempted},
        )


class InvalidPaymentAmountError(AppException):
    """Payment amount is negative or not a number."""

    def __init__(self, amount: Any):
        super().__init__(
            message=f"Payment amount must be a non-negative number, got {amount}",
            status_code=422,
            details={"field": "amount", "amount": str(amount)},
        )


class StatusComputationInputError(AppException):
    """Negative paid-to-date or net amount passed to status computation."""

    def __init__(self, field: str, value: Any):
        super().__init__(
            message=f"{field} must not be negative, got {value}",
            status_code=422,
            details={"field": field},
        )
