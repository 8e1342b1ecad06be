from src.shared.schemas.base import (
    BaseSchema,
    PaginatedResponse,
    SuccessResponse,
    ApiResponse,
    ErrorResponse,
    ErrorDetail,
    AuditEntryResponse,
)

__all__ = [
    "BaseSchema",
    "PaginatedResponse",
    "SuccessResponse",
    "ApiResponse",
    "ErrorResponse",
    "ErrorDetail",
    "AuditEntryResponse",
]
