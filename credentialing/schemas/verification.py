"""Pydantic schemas for automated verifications."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class VerificationRead(BaseModel):
    id: UUID
    provider_id: UUID
    verification_type: str
    status: str
    verified_at: datetime | None = None
    source: str | None = None
    notes: str | None = None
    details: dict | None = None
    next_check_at: datetime | None = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class VerificationOutcomeRead(BaseModel):
    verification_type: str
    status: str | None = None
    notes: str | None = None
    skipped: bool = False
    error: str | None = None


class RunVerificationsResponse(BaseModel):
    results: list[VerificationOutcomeRead]


class IdentityNumberSubmit(BaseModel):
    identity_number: str = Field(..., min_length=10, max_length=14)
