"""
Credentialing alert engine.

Alerts are derived from document expirations and verification outcomes and
deduplicated per condition: at most one unresolved alert exists for a
(provider, alert_type, dedupe_key). Resolution is an explicit admin action;
a condition that persists after resolution fires a new alert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from credentialing.core.exceptions import ConflictError, NotFoundError
from credentialing.core.structured_logging import build_log_context
from credentialing.db.enums import (
    EXCLUSION_VERIFICATION_TYPES,
    SEVERITY_RANK,
    AlertSeverity,
    AlertType,
    AuditEventType,
    DocumentType,
    ExpirationStatus,
    VerificationStatus,
    VerificationType,
)
from credentialing.db.models import CredentialingAlert, CredentialingDocument, Verification
from credentialing.services import audit_service, notification_service, record_service
from credentialing.services.document_service import compute_expiration_status, days_until_expiration
from credentialing.utils.dates import utc_now

logger = logging.getLogger(__name__)

EXPIRATION_SEVERITY = {
    ExpirationStatus.CRITICAL: AlertSeverity.CRITICAL,
    ExpirationStatus.WARNING: AlertSeverity.WARNING,
    ExpirationStatus.NOTICE: AlertSeverity.INFO,
}

VERIFICATION_LABELS = {
    VerificationType.IDENTITY_NUMBER: "NPI",
    VerificationType.CONTROLLED_SUBSTANCE_REGISTRATION: "DEA registration",
    VerificationType.EXCLUSION_REGISTRY_PRIMARY: "OIG exclusion list",
    VerificationType.EXCLUSION_REGISTRY_SECONDARY: "SAM.gov exclusion list",
}


@dataclass
class EvaluationResult:
    created: int = 0
    escalated: int = 0

    def add(self, outcome: str | None) -> None:
        if outcome == "created":
            self.created += 1
        elif outcome == "escalated":
            self.escalated += 1


def document_dedupe_key(document_id: UUID) -> str:
    return f"document:{document_id}"


def verification_dedupe_key(verification_type: VerificationType) -> str:
    return f"verification:{verification_type.value}"


def _document_label(document_type: str) -> str:
    try:
        return DocumentType(document_type).value.replace("_", " ").capitalize()
    except ValueError:
        return document_type


# =============================================================================
# Dedupe
# =============================================================================


def get_open_alert(
    db: Session, provider_id: UUID, alert_type: AlertType, dedupe_key: str
) -> CredentialingAlert | None:
    """The unresolved alert for a condition, if any."""
    return db.execute(
        select(CredentialingAlert)
        .where(
            CredentialingAlert.provider_id == provider_id,
            CredentialingAlert.alert_type == alert_type.value,
            CredentialingAlert.dedupe_key == dedupe_key,
            CredentialingAlert.resolved.is_(False),
        )
        .order_by(CredentialingAlert.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def ensure_alert(
    db: Session,
    provider_id: UUID,
    alert_type: AlertType,
    dedupe_key: str,
    severity: AlertSeverity,
    message: str,
    now: datetime,
) -> str | None:
    """
    Make sure one unresolved alert exists for the condition.

    Returns "created", "escalated" (severity raised in place) or None when
    the existing alert already covers it. New and escalated alerts queue a
    provider email. Caller holds the provider lock.
    """
    existing = get_open_alert(db, provider_id, alert_type, dedupe_key)
    if existing:
        if SEVERITY_RANK[severity] > SEVERITY_RANK[AlertSeverity(existing.severity)]:
            existing.severity = severity.value
            existing.message = message
            existing.updated_at = now
            db.flush()
            notification_service.notify_alert(db, provider_id, alert_type, severity, message, now)
            return "escalated"
        return None

    db.add(
        CredentialingAlert(
            provider_id=provider_id,
            alert_type=alert_type.value,
            dedupe_key=dedupe_key,
            severity=severity.value,
            message=message,
            created_at=now,
            updated_at=now,
        )
    )
    db.flush()
    notification_service.notify_alert(db, provider_id, alert_type, severity, message, now)
    logger.info(
        "Credentialing alert raised: %s",
        alert_type.value,
        extra=build_log_context(provider_id=str(provider_id)),
    )
    return "created"


def raise_verification_alert(
    db: Session,
    provider_id: UUID,
    verification_type: VerificationType,
    status: VerificationStatus,
    now: datetime,
    reason: str | None = None,
) -> str | None:
    """Alert for a failed or requires_review verification; other statuses raise nothing."""
    label = VERIFICATION_LABELS[verification_type]
    key = verification_dedupe_key(verification_type)

    if status == VerificationStatus.FAILED:
        if verification_type in EXCLUSION_VERIFICATION_TYPES:
            alert_type = AlertType.EXCLUSION_MATCH
            message = f"CRITICAL: Provider appears on the {label}. Immediate action required."
        else:
            alert_type = AlertType.VERIFICATION_FAILED
            message = f"{label} verification failed."
        if reason:
            message = f"{message} {reason}"
        return ensure_alert(db, provider_id, alert_type, key, AlertSeverity.CRITICAL, message, now)

    if status == VerificationStatus.REQUIRES_REVIEW:
        message = f"{label} check could not be completed and needs manual review."
        if reason:
            message = f"{message} {reason}"
        return ensure_alert(
            db,
            provider_id,
            AlertType.VERIFICATION_NEEDS_REVIEW,
            key,
            AlertSeverity.WARNING,
            message,
            now,
        )
    return None


def _expiration_alert(
    db: Session, document: CredentialingDocument, now: datetime
) -> str | None:
    status = compute_expiration_status(document.expiration_date, now)
    label = _document_label(document.document_type)
    key = document_dedupe_key(document.id)
    expires = document.expiration_date.isoformat() if document.expiration_date else ""

    if status == ExpirationStatus.EXPIRED:
        return ensure_alert(
            db,
            document.provider_id,
            AlertType.DOCUMENT_EXPIRED,
            key,
            AlertSeverity.CRITICAL,
            f"{label} expired on {expires}.",
            now,
        )
    severity = EXPIRATION_SEVERITY.get(status)
    if severity is None:
        return None
    days = days_until_expiration(document.expiration_date, now)
    return ensure_alert(
        db,
        document.provider_id,
        AlertType.DOCUMENT_EXPIRING,
        key,
        severity,
        f"{label} expires in {days} day{'s' if days != 1 else ''} ({expires}).",
        now,
    )


# =============================================================================
# Evaluation
# =============================================================================


def evaluate_alerts(db: Session, provider_id: UUID, now: datetime) -> EvaluationResult:
    """
    Re-derive the provider's alerts. Idempotent; flushes, never commits.

    Caller holds the provider lock.
    """
    result = EvaluationResult()

    documents = list(
        db.execute(
            select(CredentialingDocument).where(
                CredentialingDocument.provider_id == provider_id,
                CredentialingDocument.expiration_date.is_not(None),
            )
        ).scalars()
    )
    for document in documents:
        result.add(_expiration_alert(db, document, now))

    verifications = list(
        db.execute(
            select(Verification).where(
                Verification.provider_id == provider_id,
                Verification.status.in_(
                    [VerificationStatus.FAILED.value, VerificationStatus.REQUIRES_REVIEW.value]
                ),
            )
        ).scalars()
    )
    for verification in verifications:
        result.add(
            raise_verification_alert(
                db,
                provider_id,
                VerificationType(verification.verification_type),
                VerificationStatus(verification.status),
                now,
            )
        )
    return result


def evaluate_provider(
    db: Session,
    provider_id: UUID,
    now: datetime | None = None,
    actor_id: str | None = None,
) -> EvaluationResult:
    """Run alert evaluation for one provider under the provider lock and commit."""
    now = now or utc_now()
    with record_service.record_write(db, provider_id, actor_id, now):
        result = evaluate_alerts(db, provider_id, now)
    if result.created or result.escalated:
        logger.info(
            "Alert evaluation: %d created, %d escalated",
            result.created,
            result.escalated,
            extra=build_log_context(provider_id=str(provider_id)),
        )
    return result


# =============================================================================
# Queries and resolution
# =============================================================================


def get_alert(db: Session, alert_id: UUID) -> CredentialingAlert:
    alert = db.get(CredentialingAlert, alert_id)
    if not alert:
        raise NotFoundError(f"Alert {alert_id} not found")
    return alert


def resolve_alert(
    db: Session,
    alert_id: UUID,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> CredentialingAlert:
    """
    Resolve an alert. Never reversible.

    Resolving is allowed while the condition persists; the next evaluation
    then fires a fresh alert.
    """
    now = now or utc_now()
    alert = get_alert(db, alert_id)
    provider_id = alert.provider_id

    with record_service.record_write(db, provider_id, actor_id, now):
        db.refresh(alert)
        if alert.resolved:
            raise ConflictError("Alert is already resolved")
        alert.resolved = True
        alert.resolved_at = now
        alert.resolved_by = actor_id
        alert.updated_at = now
        audit_service.log_event(
            db=db,
            provider_id=provider_id,
            event_type=AuditEventType.ALERT_RESOLVED,
            actor_id=actor_id,
            target_type="credentialing_alert",
            target_id=alert.id,
            details={"alert_type": alert.alert_type, "severity": alert.severity},
        )
    db.refresh(alert)
    return alert


def _filtered(query, provider_id, severity, resolved, alert_type):
    if provider_id:
        query = query.where(CredentialingAlert.provider_id == provider_id)
    if severity:
        query = query.where(CredentialingAlert.severity == severity.value)
    if resolved is not None:
        query = query.where(CredentialingAlert.resolved.is_(resolved))
    if alert_type:
        query = query.where(CredentialingAlert.alert_type == alert_type.value)
    return query


def list_alerts(
    db: Session,
    provider_id: UUID | None = None,
    severity: AlertSeverity | None = None,
    resolved: bool | None = None,
    alert_type: AlertType | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[CredentialingAlert]:
    """List alerts with optional filtering, newest first."""
    query = _filtered(select(CredentialingAlert), provider_id, severity, resolved, alert_type)
    query = query.order_by(
        CredentialingAlert.created_at.desc(), CredentialingAlert.id.desc()
    ).offset(offset).limit(limit)
    return list(db.execute(query).scalars())


def count_alerts(
    db: Session,
    provider_id: UUID | None = None,
    severity: AlertSeverity | None = None,
    resolved: bool | None = None,
    alert_type: AlertType | None = None,
) -> int:
    """Count alerts with optional filtering."""
    query = _filtered(
        select(func.count()).select_from(CredentialingAlert),
        provider_id,
        severity,
        resolved,
        alert_type,
    )
    return db.execute(query).scalar_one()
