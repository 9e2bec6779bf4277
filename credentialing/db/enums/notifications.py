"""Provider notification enums."""

from enum import Enum


class NotificationKind(str, Enum):
    """Provider-facing credentialing emails."""

    WELCOME = "welcome"
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_VERIFIED = "document_verified"
    DOCUMENT_EXPIRING = "document_expiring"
    PHASE_COMPLETED = "phase_completed"
    CREDENTIALING_APPROVED = "credentialing_approved"
    ALERT = "alert"


class NotificationStatus(str, Enum):
    """Delivery status of a queued notification."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
