"""Pydantic schemas for credentialing documents."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field


class DocumentRead(BaseModel):
    """Document metadata with its expiration band."""

    id: UUID
    provider_id: UUID
    document_type: str
    filename: str
    content_type: str
    file_size: int
    checksum_sha256: str
    expiration_date: date | None = None
    expiration_status: str = "none"
    days_until_expiration: int | None = None
    verified: bool
    verification_notes: str | None = None
    verified_by: str | None = None
    verified_at: datetime | None = None
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class DocumentVerifyRequest(BaseModel):
    verified: bool
    notes: str | None = Field(default=None, max_length=4000)


class RequiredDocumentStatus(BaseModel):
    """Provider checklist line."""

    document_type: str
    uploaded: bool
    verified: bool
    expiration_status: str = "none"
