"""Pydantic schemas for API request/response models."""

from credentialing.schemas.alert import AlertListResponse, AlertRead, EvaluateAlertsResponse
from credentialing.schemas.credentialing import (
    AuditEventRead,
    AuditTrailResponse,
    CredentialingRecordRead,
    MyStatusResponse,
    PendingProviderItem,
    PendingProviderListResponse,
    PhaseAdvanceRequest,
    PhaseCompleteRequest,
    PhaseRead,
    ProviderDetailResponse,
    ProviderSummary,
    RejectRequest,
)
from credentialing.schemas.document import DocumentRead, DocumentVerifyRequest, RequiredDocumentStatus
from credentialing.schemas.note import NoteCreate, NoteRead
from credentialing.schemas.notification import (
    NotificationPreferencesRead,
    NotificationPreferencesUpdate,
)
from credentialing.schemas.verification import (
    IdentityNumberSubmit,
    RunVerificationsResponse,
    VerificationOutcomeRead,
    VerificationRead,
)

__all__ = [
    # Credentialing
    "AuditEventRead",
    "AuditTrailResponse",
    "CredentialingRecordRead",
    "MyStatusResponse",
    "PendingProviderItem",
    "PendingProviderListResponse",
    "PhaseAdvanceRequest",
    "PhaseCompleteRequest",
    "PhaseRead",
    "ProviderDetailResponse",
    "ProviderSummary",
    "RejectRequest",
    # Documents
    "DocumentRead",
    "DocumentVerifyRequest",
    "RequiredDocumentStatus",
    # Verifications
    "IdentityNumberSubmit",
    "RunVerificationsResponse",
    "VerificationOutcomeRead",
    "VerificationRead",
    # Alerts
    "AlertListResponse",
    "AlertRead",
    "EvaluateAlertsResponse",
    # Notes
    "NoteCreate",
    "NoteRead",
    # Notifications
    "NotificationPreferencesRead",
    "NotificationPreferencesUpdate",
]
