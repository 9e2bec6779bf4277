"""Tests for alert evaluation, dedupe, escalation and resolution."""

from datetime import timedelta

import pytest

from conftest import ADMIN_ID, NOW
from credentialing.core.exceptions import ConflictError, NotFoundError
from credentialing.db.enums import (
    AlertSeverity,
    AlertType,
    DocumentType,
    VerificationStatus,
    VerificationType,
)
from credentialing.services import alert_service, audit_service, document_service, record_service


def _upload(db, store, provider, days, document_type=DocumentType.LICENSE):
    return document_service.upload_document(
        db,
        store,
        provider.id,
        data=b"%PDF-1.4",
        filename="doc.pdf",
        content_type="application/pdf",
        document_type=document_type,
        expiration_date=NOW.date() + timedelta(days=days),
        now=NOW,
    )


def test_expiring_licence_raises_one_critical_alert(db, store, provider):
    document = _upload(db, store, provider, days=5)

    result = alert_service.evaluate_provider(db, provider.id, now=NOW)

    assert (result.created, result.escalated) == (1, 0)
    alerts = alert_service.list_alerts(db, provider_id=provider.id)
    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.alert_type == AlertType.DOCUMENT_EXPIRING.value
    assert alert.severity == AlertSeverity.CRITICAL.value
    assert alert.dedupe_key == f"document:{document.id}"
    assert "4 days" in alert.message


def test_evaluation_is_idempotent(db, store, provider):
    _upload(db, store, provider, days=5)
    alert_service.evaluate_provider(db, provider.id, now=NOW)

    result = alert_service.evaluate_provider(db, provider.id, now=NOW + timedelta(hours=6))

    assert (result.created, result.escalated) == (0, 0)
    assert alert_service.count_alerts(db, provider_id=provider.id) == 1


def test_far_off_expiration_raises_nothing(db, store, provider):
    _upload(db, store, provider, days=200)
    result = alert_service.evaluate_provider(db, provider.id, now=NOW)
    assert result.created == 0
    assert alert_service.count_alerts(db) == 0


def test_severity_escalates_in_place(db, store, provider):
    _upload(db, store, provider, days=45)
    alert_service.evaluate_provider(db, provider.id, now=NOW)
    [alert] = alert_service.list_alerts(db, provider_id=provider.id)
    assert alert.severity == AlertSeverity.INFO.value

    result = alert_service.evaluate_provider(db, provider.id, now=NOW + timedelta(days=20))

    assert (result.created, result.escalated) == (0, 1)
    [escalated] = alert_service.list_alerts(db, provider_id=provider.id)
    assert escalated.id == alert.id
    assert escalated.severity == AlertSeverity.WARNING.value


def test_expired_document_gets_its_own_alert(db, store, provider):
    _upload(db, store, provider, days=3)
    alert_service.evaluate_provider(db, provider.id, now=NOW)
    alert_service.evaluate_provider(db, provider.id, now=NOW + timedelta(days=4))

    types = {a.alert_type for a in alert_service.list_alerts(db, provider_id=provider.id)}
    assert types == {AlertType.DOCUMENT_EXPIRING.value, AlertType.DOCUMENT_EXPIRED.value}
    expired = alert_service.list_alerts(
        db, provider_id=provider.id, alert_type=AlertType.DOCUMENT_EXPIRED
    )
    assert expired[0].severity == AlertSeverity.CRITICAL.value


def test_resolved_condition_fires_again(db, store, provider):
    _upload(db, store, provider, days=5)
    alert_service.evaluate_provider(db, provider.id, now=NOW)
    [alert] = alert_service.list_alerts(db, provider_id=provider.id)

    resolved = alert_service.resolve_alert(db, alert.id, actor_id=ADMIN_ID, now=NOW)
    assert resolved.resolved is True
    assert resolved.resolved_by == ADMIN_ID

    result = alert_service.evaluate_provider(db, provider.id, now=NOW + timedelta(hours=1))
    assert result.created == 1
    assert alert_service.count_alerts(db, provider_id=provider.id, resolved=False) == 1
    assert alert_service.count_alerts(db, provider_id=provider.id, resolved=True) == 1


def test_double_resolve_conflicts(db, store, provider):
    _upload(db, store, provider, days=5)
    alert_service.evaluate_provider(db, provider.id, now=NOW)
    [alert] = alert_service.list_alerts(db, provider_id=provider.id)
    alert_service.resolve_alert(db, alert.id, actor_id=ADMIN_ID, now=NOW)

    with pytest.raises(ConflictError):
        alert_service.resolve_alert(db, alert.id, actor_id=ADMIN_ID, now=NOW)

    events = [e.event_type for e in audit_service.list_events(db, provider.id)]
    assert events.count("alert_resolved") == 1


def test_resolve_unknown_alert(db):
    import uuid

    with pytest.raises(NotFoundError):
        alert_service.resolve_alert(db, uuid.uuid4(), actor_id=ADMIN_ID)


def test_verification_alert_dedupes_per_condition(db, provider):
    with record_service.record_write(db, provider.id, ADMIN_ID, NOW):
        first = alert_service.raise_verification_alert(
            db, provider.id, VerificationType.IDENTITY_NUMBER, VerificationStatus.REQUIRES_REVIEW, NOW
        )
        again = alert_service.raise_verification_alert(
            db, provider.id, VerificationType.IDENTITY_NUMBER, VerificationStatus.REQUIRES_REVIEW, NOW
        )
        verified = alert_service.raise_verification_alert(
            db, provider.id, VerificationType.IDENTITY_NUMBER, VerificationStatus.VERIFIED, NOW
        )

    assert (first, again, verified) == ("created", None, None)
    [alert] = alert_service.list_alerts(db, provider_id=provider.id)
    assert alert.dedupe_key == "verification:identity_number"


def test_review_then_failure_keeps_warning_and_adds_critical(db, provider):
    with record_service.record_write(db, provider.id, ADMIN_ID, NOW):
        review = alert_service.raise_verification_alert(
            db, provider.id, VerificationType.IDENTITY_NUMBER, VerificationStatus.REQUIRES_REVIEW, NOW
        )
        failed = alert_service.raise_verification_alert(
            db, provider.id, VerificationType.IDENTITY_NUMBER, VerificationStatus.FAILED, NOW
        )

    assert (review, failed) == ("created", "created")
    alerts = alert_service.list_alerts(db, provider_id=provider.id, resolved=False)
    by_type = {a.alert_type: a for a in alerts}
    assert set(by_type) == {
        AlertType.VERIFICATION_NEEDS_REVIEW.value,
        AlertType.VERIFICATION_FAILED.value,
    }
    assert by_type[AlertType.VERIFICATION_NEEDS_REVIEW.value].severity == AlertSeverity.WARNING.value
    assert by_type[AlertType.VERIFICATION_FAILED.value].severity == AlertSeverity.CRITICAL.value
    assert {a.dedupe_key for a in alerts} == {"verification:identity_number"}


def test_list_alerts_filters(db, store, provider):
    _upload(db, store, provider, days=5)
    _upload(db, store, provider, days=45, document_type=DocumentType.LIABILITY_INSURANCE)
    alert_service.evaluate_provider(db, provider.id, now=NOW)

    critical = alert_service.list_alerts(db, severity=AlertSeverity.CRITICAL)
    info = alert_service.list_alerts(db, severity=AlertSeverity.INFO)
    assert len(critical) == 1
    assert len(info) == 1
    assert alert_service.count_alerts(db, provider_id=provider.id) == 2
    assert len(alert_service.list_alerts(db, limit=1)) == 1
