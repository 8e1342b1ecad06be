"""Schemas for schools and their receipt numbering settings."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.core.documents.models import ReceiptDocumentType, ReceiptNumberFormat


class ReceiptSequenceSettings(BaseModel):
    """One receipt sequence (fee or installment)."""

    prefix: str = Field("", max_length=20)
    format: ReceiptNumberFormat = ReceiptNumberFormat.AUTO
    counter: int = Field(0, ge=0, description="Last issued sequence value")
    year: int | None = Field(None, ge=1900, le=9999)


class ReceiptSequenceUpdate(BaseModel):
    """Update one receipt sequence (all optional). Only ``year`` may be cleared with null."""

    prefix: str | None = Field(None, max_length=20)
    format: ReceiptNumberFormat | None = None
    counter: int | None = Field(None, ge=0)
    year: int | None = Field(None, ge=1900, le=9999)

    @field_validator("prefix", "format", "counter")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class SchoolCreate(BaseModel):
    """Create a school. Sequences default from settings when omitted."""

    name: str = Field(..., min_length=1, max_length=255)
    english_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    fee_receipts: ReceiptSequenceSettings | None = None
    installment_receipts: ReceiptSequenceSettings | None = None


class ReceiptSettingsUpdate(BaseModel):
    """Update receipt settings of a school (only provided sequences/fields)."""

    fee_receipts: ReceiptSequenceUpdate | None = None
    installment_receipts: ReceiptSequenceUpdate | None = None


class ReceiptSettingsResponse(BaseModel):
    """Receipt settings of a school."""

    school_id: int
    fee_receipts: ReceiptSequenceSettings
    installment_receipts: ReceiptSequenceSettings


class SchoolResponse(BaseModel):
    """School for API response."""

    id: int
    name: str
    english_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReceiptNumberPreview(BaseModel):
    """Next receipt number as it would be issued (not reserved)."""

    school_id: int
    document_type: ReceiptDocumentType
    receipt_number: str
    sequence: int
    year: int
