"""Audit enums."""

from enum import Enum


class AuditEventType(str, Enum):
    """
    Credentialing audit events.

    Groups:
    - RECORD_*: Credentialing record lifecycle
    - PHASE_*: Phase transitions
    - DOCUMENT_*: Document lifecycle
    - VERIFICATION_*: Automated registry checks
    - ALERT_*: Alert resolution
    - NOTE_*: Notes added
    """

    RECORD_CREATED = "record_created"
    RECORD_APPROVED = "record_approved"
    RECORD_REJECTED = "record_rejected"
    RECORD_REOPENED = "record_reopened"

    PHASE_STARTED = "phase_started"
    PHASE_COMPLETED = "phase_completed"
    PHASE_FAILED = "phase_failed"

    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_VERIFIED = "document_verified"
    DOCUMENT_UNVERIFIED = "document_unverified"
    DOCUMENT_DELETED = "document_deleted"

    VERIFICATION_RUN = "verification_run"
    IDENTITY_NUMBER_SUBMITTED = "identity_number_submitted"

    ALERT_RESOLVED = "alert_resolved"

    NOTE_ADDED = "note_added"
