"""Credentialing alert enums."""

from enum import Enum


class AlertType(str, Enum):
    """Categories of credentialing alerts."""

    DOCUMENT_EXPIRING = "document_expiring"
    DOCUMENT_EXPIRED = "document_expired"
    VERIFICATION_FAILED = "verification_failed"
    EXCLUSION_MATCH = "exclusion_match"
    VERIFICATION_NEEDS_REVIEW = "verification_needs_review"


class AlertSeverity(str, Enum):
    """Severity levels for alerts."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.INFO: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.CRITICAL: 2,
}
