"""
Notification Service - provider-facing credentialing emails.

Emails are queued as outbox rows inside the credentialing write that caused
them (the caller holds the provider lock and commits) and delivered by
`deliver_pending`, from the scheduled jobs or the CLI. A provider without an
email address, or who opted out, gets no row.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from credentialing.core.config import settings
from credentialing.core.exceptions import NotFoundError
from credentialing.core.structured_logging import build_log_context
from credentialing.db.enums import (
    AlertSeverity,
    AlertType,
    CredentialingPhase,
    DocumentType,
    NotificationKind,
    NotificationStatus,
)
from credentialing.db.models import (
    CredentialingDocument,
    CredentialingNotification,
    NotificationPreference,
    Provider,
)
from credentialing.services import resend_email_service
from credentialing.utils.dates import utc_now

logger = logging.getLogger(__name__)

PREFERENCE_KEYS = (
    "email_enabled",
    "document_upload_confirmation",
    "document_verified",
    "document_expiring",
    "phase_completed",
    "credentialing_approved",
    "alerts",
    "critical_alerts_only",
)

DEFAULT_PREFERENCES = {key: key != "critical_alerts_only" for key in PREFERENCE_KEYS}

DOCUMENT_LABELS = {
    DocumentType.LICENSE: "Professional License",
    DocumentType.TRANSCRIPT: "Graduate Transcript",
    DocumentType.DIPLOMA: "Diploma/Degree",
    DocumentType.GOVERNMENT_ID: "Government ID",
    DocumentType.LIABILITY_INSURANCE: "Liability Insurance",
    DocumentType.DEA_CERTIFICATE: "DEA Certificate",
    DocumentType.BOARD_CERTIFICATION: "Board Certification",
}

PHASE_LABELS = {
    CredentialingPhase.DOCUMENT_REVIEW: "Document Review",
    CredentialingPhase.IDENTITY_VERIFICATION: "NPI Verification",
    CredentialingPhase.LICENSE_VERIFICATION: "License Verification",
    CredentialingPhase.EDUCATION_VERIFICATION: "Education Verification",
    CredentialingPhase.BACKGROUND_CHECK: "Background Check",
    CredentialingPhase.INSURANCE_VERIFICATION: "Insurance Verification",
    CredentialingPhase.EXCLUSION_CHECK: "OIG/SAM Exclusion Check",
    CredentialingPhase.FINAL_REVIEW: "Final Review",
}

WELCOME_STEPS = [
    "Review the list of required documents",
    "Upload your license, transcript, diploma, government ID and insurance",
    "Submit your NPI number for verification",
    "Watch the Status & Progress tab and respond promptly to alerts",
]

APPROVED_STEPS = [
    "Complete your provider profile with bio, specialties, and photo",
    "Set your availability and scheduling preferences",
    "Keep your credentials current by uploading updated documents before expiration",
]


@dataclass
class DeliveryResult:
    sent: int = 0
    failed: int = 0
    skipped: int = 0


# =============================================================================
# Preferences
# =============================================================================


def _row(db: Session, provider_id: UUID) -> NotificationPreference | None:
    return db.get(NotificationPreference, provider_id)


def get_preferences(db: Session, provider_id: UUID) -> dict[str, bool]:
    """
    Get a provider's email preferences.

    Returns defaults (all ON, critical-only OFF) if no row exists.
    """
    row = _row(db, provider_id)
    if not row:
        return dict(DEFAULT_PREFERENCES)
    return {key: getattr(row, key) for key in PREFERENCE_KEYS}


def update_preferences(
    db: Session,
    provider_id: UUID,
    updates: dict[str, bool],
) -> dict[str, bool]:
    """Update preferences, creating the row on first change."""
    row = _row(db, provider_id)
    if not row:
        if not db.get(Provider, provider_id):
            raise NotFoundError(f"Provider {provider_id} not found")
        row = NotificationPreference(provider_id=provider_id, **DEFAULT_PREFERENCES)
        db.add(row)

    for key, value in updates.items():
        if key in PREFERENCE_KEYS and value is not None:
            setattr(row, key, value)
    row.updated_at = utc_now()

    db.commit()
    db.refresh(row)
    return {key: getattr(row, key) for key in PREFERENCE_KEYS}


def should_notify(db: Session, provider_id: UUID, setting_key: str) -> bool:
    """Check if the provider wants this email."""
    preferences = get_preferences(db, provider_id)
    return preferences["email_enabled"] and preferences.get(setting_key, True)


# =============================================================================
# Queueing
# =============================================================================


def portal_url(tab: str | None = None) -> str:
    url = f"{settings.PORTAL_BASE_URL.rstrip('/')}/provider-credentialing"
    return f"{url}?tab={tab}" if tab else url


def _format_date(value: date | datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def _document_label(document_type: str) -> str:
    try:
        return DOCUMENT_LABELS[DocumentType(document_type)]
    except (KeyError, ValueError):
        return document_type.replace("_", " ").title()


def _phase_label(phase: CredentialingPhase | None) -> str:
    return PHASE_LABELS.get(phase, "") if phase else ""


def _render(greeting_name: str, paragraphs: list[str], steps: list[str] | None, link: str) -> str:
    parts = [f"<p>Hello {html.escape(greeting_name)},</p>"]
    parts.extend(f"<p>{html.escape(text)}</p>" for text in paragraphs)
    if steps:
        items = "".join(f"<li>{html.escape(step)}</li>" for step in steps)
        parts.append(f"<ol>{items}</ol>")
    parts.append(f'<p><a href="{html.escape(link, quote=True)}">Open your credentialing portal</a></p>')
    parts.append(
        f"<p>Questions? Contact {html.escape(settings.SUPPORT_EMAIL)}.</p>"
    )
    return "\n".join(parts)


def _queue(
    db: Session,
    provider_id: UUID,
    kind: NotificationKind,
    setting_key: str | None,
    subject: str,
    paragraphs: list[str],
    now: datetime,
    steps: list[str] | None = None,
    link: str | None = None,
) -> CredentialingNotification | None:
    provider = db.get(Provider, provider_id)
    if not provider or not provider.email:
        logger.info(
            "No email on file; %s notification not queued",
            kind.value,
            extra=build_log_context(provider_id=str(provider_id)),
        )
        return None
    if not should_notify(db, provider_id, setting_key or "email_enabled"):
        return None

    name = provider.full_name or provider.email
    notification = CredentialingNotification(
        provider_id=provider_id,
        kind=kind.value,
        recipient_email=provider.email,
        subject=subject,
        body=_render(name, paragraphs, steps, link or portal_url()),
        status=NotificationStatus.PENDING.value,
        created_at=now,
    )
    db.add(notification)
    db.flush()
    return notification


def notify_welcome(db: Session, provider_id: UUID, now: datetime) -> CredentialingNotification | None:
    return _queue(
        db,
        provider_id,
        NotificationKind.WELCOME,
        None,
        "Welcome to provider credentialing",
        ["Your credentialing file has been opened. Here is how to get started:"],
        now,
        steps=WELCOME_STEPS,
    )


def notify_document_uploaded(
    db: Session, document: CredentialingDocument, now: datetime
) -> CredentialingNotification | None:
    label = _document_label(document.document_type)
    return _queue(
        db,
        document.provider_id,
        NotificationKind.DOCUMENT_UPLOADED,
        "document_upload_confirmation",
        f"We received your {label}",
        [f"We received {document.filename} ({label}) on {_format_date(now)}. Our team will review it shortly."],
        now,
    )


def notify_document_verified(
    db: Session, document: CredentialingDocument, now: datetime
) -> CredentialingNotification | None:
    label = _document_label(document.document_type)
    return _queue(
        db,
        document.provider_id,
        NotificationKind.DOCUMENT_VERIFIED,
        "document_verified",
        f"Your {label} has been verified",
        [f"{document.filename} ({label}) was verified on {_format_date(now)}."],
        now,
    )


def notify_phase_completed(
    db: Session,
    provider_id: UUID,
    phase: CredentialingPhase,
    next_phase: CredentialingPhase | None,
    progress_percentage: int,
    now: datetime,
) -> CredentialingNotification | None:
    paragraphs = [
        f"{_phase_label(phase)} was completed on {_format_date(now)}. "
        f"Your credentialing is {progress_percentage}% complete."
    ]
    if next_phase:
        paragraphs.append(f"Next up: {_phase_label(next_phase)}.")
    return _queue(
        db,
        provider_id,
        NotificationKind.PHASE_COMPLETED,
        "phase_completed",
        f"Credentialing update: {_phase_label(phase)} complete",
        paragraphs,
        now,
    )


def notify_approved(db: Session, provider_id: UUID, now: datetime) -> CredentialingNotification | None:
    return _queue(
        db,
        provider_id,
        NotificationKind.CREDENTIALING_APPROVED,
        "credentialing_approved",
        "Your credentialing has been approved",
        [f"Congratulations! Your credentialing was approved on {_format_date(now)}. Next steps:"],
        now,
        steps=APPROVED_STEPS,
        link=f"{settings.PORTAL_BASE_URL.rstrip('/')}/dashboard",
    )


def notify_alert(
    db: Session,
    provider_id: UUID,
    alert_type: AlertType,
    severity: AlertSeverity,
    message: str,
    now: datetime,
) -> CredentialingNotification | None:
    """
    Email the provider about a new or escalated alert.

    Expiration alerts follow the document-expiring preference; all other
    alerts follow the alerts preference and the critical-only filter.
    """
    if alert_type in (AlertType.DOCUMENT_EXPIRING, AlertType.DOCUMENT_EXPIRED):
        setting_key = "document_expiring"
        link = portal_url("upload")
    else:
        setting_key = "alerts"
        link = portal_url("alerts")
        preferences = get_preferences(db, provider_id)
        if preferences["critical_alerts_only"] and severity != AlertSeverity.CRITICAL:
            return None

    title = alert_type.value.replace("_", " ").capitalize()
    prefix = "Action required: " if severity == AlertSeverity.CRITICAL else ""
    return _queue(
        db,
        provider_id,
        NotificationKind.DOCUMENT_EXPIRING if setting_key == "document_expiring" else NotificationKind.ALERT,
        setting_key,
        f"{prefix}{title}",
        [message],
        now,
        link=link,
    )


# =============================================================================
# Delivery
# =============================================================================


def pending_notifications(db: Session, limit: int) -> list[CredentialingNotification]:
    return list(
        db.execute(
            select(CredentialingNotification)
            .where(CredentialingNotification.status == NotificationStatus.PENDING.value)
            .order_by(CredentialingNotification.created_at.asc())
            .limit(limit)
        ).scalars()
    )


async def deliver_pending(
    db: Session,
    limit: int | None = None,
    api_key: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    now: datetime | None = None,
) -> DeliveryResult:
    """
    Send queued emails, committing after each one.

    Without a Resend API key rows are marked skipped so they do not pile up
    in development.
    """
    api_key = settings.RESEND_API_KEY if api_key is None else api_key
    limit = limit or settings.NOTIFICATION_BATCH_SIZE
    result = DeliveryResult()

    for notification in pending_notifications(db, limit):
        if not api_key:
            notification.status = NotificationStatus.SKIPPED.value
            notification.error = "Email delivery not configured"
            db.commit()
            result.skipped += 1
            continue

        notification.attempts += 1
        outcome = await resend_email_service.send_email(
            to=notification.recipient_email,
            subject=notification.subject,
            body=notification.body,
            idempotency_key=f"credentialing-notification/{notification.id}",
            api_key=api_key,
            transport=transport,
        )
        if outcome.success:
            notification.status = NotificationStatus.SENT.value
            notification.sent_at = now or utc_now()
            notification.external_message_id = outcome.message_id
            notification.error = None
            result.sent += 1
        else:
            notification.status = NotificationStatus.FAILED.value
            notification.error = outcome.error
            result.failed += 1
            logger.warning(
                "Notification delivery failed: %s",
                outcome.error,
                extra=build_log_context(provider_id=str(notification.provider_id)),
            )
        db.commit()

    if result.sent or result.failed or result.skipped:
        logger.info(
            "Notification delivery (sent=%s failed=%s skipped=%s)",
            result.sent,
            result.failed,
            result.skipped,
        )
    return result
