"""Enum definitions for credentialing constants."""

from credentialing.db.enums.alerts import SEVERITY_RANK, AlertSeverity, AlertType
from credentialing.db.enums.audit import AuditEventType
from credentialing.db.enums.credentialing import (
    EXCLUSION_VERIFICATION_TYPES,
    PHASE_ORDER,
    PHASE_VERIFICATION_PREREQUISITES,
    TERMINAL_CREDENTIALING_STATUSES,
    CredentialingPhase,
    CredentialingStatus,
    NoteCategory,
    PhaseStatus,
    VerificationStatus,
    VerificationType,
)
from credentialing.db.enums.documents import (
    EXPIRATION_BEARING_TYPES,
    REQUIRED_DOCUMENT_TYPES,
    DocumentType,
    ExpirationStatus,
)
from credentialing.db.enums.notifications import NotificationKind, NotificationStatus

__all__ = [
    "AlertSeverity",
    "AlertType",
    "AuditEventType",
    "CredentialingPhase",
    "CredentialingStatus",
    "DocumentType",
    "EXCLUSION_VERIFICATION_TYPES",
    "EXPIRATION_BEARING_TYPES",
    "ExpirationStatus",
    "NoteCategory",
    "NotificationKind",
    "NotificationStatus",
    "PHASE_ORDER",
    "PHASE_VERIFICATION_PREREQUISITES",
    "PhaseStatus",
    "REQUIRED_DOCUMENT_TYPES",
    "SEVERITY_RANK",
    "TERMINAL_CREDENTIALING_STATUSES",
    "VerificationStatus",
    "VerificationType",
]
