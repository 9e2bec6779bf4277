"""SQLAlchemy ORM models."""

from credentialing.db.models.alerts import CredentialingAlert
from credentialing.db.models.audit import AuditLog
from credentialing.db.models.credentialing import (
    CredentialingNote,
    CredentialingRecord,
    PhaseEntry,
)
from credentialing.db.models.documents import CredentialingDocument
from credentialing.db.models.exclusions import OIGExclusion
from credentialing.db.models.notifications import CredentialingNotification, NotificationPreference
from credentialing.db.models.providers import Provider
from credentialing.db.models.verifications import Verification

__all__ = [
    "AuditLog",
    "CredentialingAlert",
    "CredentialingDocument",
    "CredentialingNote",
    "CredentialingNotification",
    "CredentialingRecord",
    "NotificationPreference",
    "OIGExclusion",
    "PhaseEntry",
    "Provider",
    "Verification",
]
