"""Pydantic schemas for credentialing records and phases."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from credentialing.db.enums import CredentialingPhase, PhaseStatus
from credentialing.schemas.alert import AlertRead
from credentialing.schemas.document import DocumentRead, RequiredDocumentStatus
from credentialing.schemas.note import NoteRead
from credentialing.schemas.verification import VerificationRead


class PhaseRead(BaseModel):
    """One phase of the credentialing timeline."""

    phase: str
    position: int
    status: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    notes: str | None = None

    model_config = {"from_attributes": True}


class CredentialingRecordRead(BaseModel):
    """Record with derived progress values."""

    id: UUID
    provider_id: UUID
    status: str
    progress: float  # completed phases / 8
    progress_percentage: int
    days_in_process: int
    current_phase: str | None = None
    submitted_at: datetime | None = None
    completed_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    phases: list[PhaseRead]


class ProviderSummary(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    email: str | None = None
    license_number: str | None = None
    license_state: str | None = None
    npi_number: str | None = None
    dea_number: str | None = None

    model_config = {"from_attributes": True}


class PendingProviderItem(BaseModel):
    """Row of the admin pending-providers list."""

    provider: ProviderSummary
    record_id: UUID
    status: str
    progress_percentage: int
    days_in_process: int
    current_phase: str | None = None
    document_count: int
    unresolved_alert_count: int
    critical_alert_count: int


class PendingProviderListResponse(BaseModel):
    items: list[PendingProviderItem]
    total: int


class PhaseAdvanceRequest(BaseModel):
    """Admin phase transition."""

    target: PhaseStatus = PhaseStatus.COMPLETED
    notes: str | None = Field(default=None, max_length=4000)


class PhaseCompleteRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=4000)


class RejectRequest(BaseModel):
    phase: CredentialingPhase
    reason: str = Field(..., min_length=1, max_length=4000)


class AuditEventRead(BaseModel):
    sequence: int
    event_type: str
    actor_id: str
    target_type: str | None = None
    target_id: str | None = None
    details: dict | None = None
    entry_hash: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditTrailResponse(BaseModel):
    items: list[AuditEventRead]
    total: int
    chain_valid: bool


class ProviderDetailResponse(BaseModel):
    """Everything an admin reviews for one provider."""

    provider: ProviderSummary
    record: CredentialingRecordRead
    documents: list[DocumentRead]
    verifications: list[VerificationRead]
    alerts: list[AlertRead]
    notes: list[NoteRead]


class MyStatusResponse(BaseModel):
    """Provider-facing view; internal notes are never included."""

    record: CredentialingRecordRead
    required_documents: list[RequiredDocumentStatus]
    verifications: list[VerificationRead]
    unresolved_alert_count: int
    notes: list[NoteRead]
