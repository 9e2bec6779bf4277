"""Tests for automated verification: outcome mapping, upserts, alerts and phases."""

import asyncio
from datetime import timedelta

import pytest

from conftest import ADMIN_ID, NOW, FakeRegistry, make_provider
from credentialing.core.exceptions import (
    RegistryLookupError,
    UnverifiedPrerequisiteError,
    ValidationError,
)
from credentialing.db.enums import (
    AlertSeverity,
    AlertType,
    AuditEventType,
    CredentialingPhase,
    PhaseStatus,
    VerificationStatus,
    VerificationType,
)
from credentialing.services import (
    alert_service,
    audit_service,
    phase_service,
    record_service,
    verification_service,
)
from credentialing.services.registry_lookup import (
    MatchStatus,
    RegistryFailure,
    RegistryMatch,
    RegistryNotFound,
)


def _phase_status(db, provider, phase):
    record = record_service.get_record(db, provider.id)
    return next(entry.status for entry in record.phases if entry.phase == phase.value)


@pytest.mark.parametrize(
    "verification_type,result,expected",
    [
        (VerificationType.IDENTITY_NUMBER, RegistryMatch(MatchStatus.ACTIVE), VerificationStatus.VERIFIED),
        (VerificationType.IDENTITY_NUMBER, RegistryMatch(MatchStatus.INACTIVE), VerificationStatus.FAILED),
        (VerificationType.IDENTITY_NUMBER, RegistryMatch(MatchStatus.EXCLUDED), VerificationStatus.FAILED),
        (VerificationType.IDENTITY_NUMBER, RegistryNotFound("nope"), VerificationStatus.FAILED),
        (VerificationType.IDENTITY_NUMBER, RegistryFailure("down"), VerificationStatus.REQUIRES_REVIEW),
        (VerificationType.EXCLUSION_REGISTRY_PRIMARY, RegistryNotFound("clean"), VerificationStatus.VERIFIED),
        (VerificationType.EXCLUSION_REGISTRY_PRIMARY, RegistryMatch(MatchStatus.EXCLUDED), VerificationStatus.FAILED),
        (VerificationType.EXCLUSION_REGISTRY_SECONDARY, RegistryFailure("no key"), VerificationStatus.REQUIRES_REVIEW),
    ],
)
def test_map_registry_result(verification_type, result, expected):
    assert verification_service.map_registry_result(verification_type, result) == expected


async def test_verified_identity_starts_phase_and_caches_npi(db, registry):
    provider = make_provider(db, npi_number=None)

    verification = await verification_service.submit_identity_number(
        db, provider.id, "123-456-7893", registry, now=NOW
    )

    assert verification.status == VerificationStatus.VERIFIED.value
    assert verification.source == "CMS NPI Registry"
    assert verification.verified_at is not None
    db.refresh(provider)
    assert provider.npi_number == "1234567893"

    record = record_service.get_record(db, provider.id)
    assert record.submitted_identity_number == "1234567893"
    assert record.submitted_at is not None
    assert _phase_status(db, provider, CredentialingPhase.IDENTITY_VERIFICATION) == PhaseStatus.IN_PROGRESS.value

    _, identity = registry.calls[-1]
    assert identity.npi_number == "1234567893"


async def test_identity_number_must_be_ten_digits(db, provider, registry):
    with pytest.raises(ValidationError):
        await verification_service.submit_identity_number(db, provider.id, "12345", registry)
    assert registry.calls == []


async def test_rerun_replaces_the_row(db, provider):
    registry = FakeRegistry({VerificationType.IDENTITY_NUMBER: RegistryFailure("registry down")})
    first = await verification_service.run_verification(
        db, provider.id, VerificationType.IDENTITY_NUMBER, registry, now=NOW
    )
    assert first.status == VerificationStatus.REQUIRES_REVIEW.value

    registry.results[VerificationType.IDENTITY_NUMBER] = RegistryMatch(MatchStatus.ACTIVE)
    second = await verification_service.run_verification(
        db, provider.id, VerificationType.IDENTITY_NUMBER, registry, now=NOW + timedelta(hours=1)
    )

    assert second.id == first.id
    assert second.status == VerificationStatus.VERIFIED.value
    assert len(verification_service.list_verifications(db, provider.id)) == 1


@pytest.mark.parametrize("match_status", [MatchStatus.INACTIVE, MatchStatus.EXCLUDED])
async def test_bad_identity_fails_blocks_phase_and_alerts(db, provider, match_status):
    registry = FakeRegistry({VerificationType.IDENTITY_NUMBER: RegistryMatch(match_status)})
    phase_service.complete_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, now=NOW)

    verification = await verification_service.run_verification(
        db, provider.id, VerificationType.IDENTITY_NUMBER, registry, now=NOW
    )

    assert verification.status == VerificationStatus.FAILED.value
    alerts = alert_service.list_alerts(db, provider_id=provider.id)
    assert len(alerts) == 1
    assert alerts[0].alert_type == AlertType.VERIFICATION_FAILED.value
    assert alerts[0].severity == AlertSeverity.CRITICAL.value
    assert _phase_status(db, provider, CredentialingPhase.IDENTITY_VERIFICATION) == PhaseStatus.FAILED.value

    # pending -> in_progress -> failed
    phase_events = [
        e.event_type
        for e in reversed(audit_service.list_events(db, provider.id))
        if (e.details or {}).get("phase") == CredentialingPhase.IDENTITY_VERIFICATION.value
    ]
    assert phase_events == [AuditEventType.PHASE_STARTED.value, AuditEventType.PHASE_FAILED.value]

    with pytest.raises(UnverifiedPrerequisiteError):
        phase_service.complete_phase(
            db, provider.id, CredentialingPhase.IDENTITY_VERIFICATION, ADMIN_ID, now=NOW
        )


async def test_exclusion_match_raises_critical_exclusion_alert(db, provider):
    registry = FakeRegistry(
        {
            VerificationType.EXCLUSION_REGISTRY_PRIMARY: RegistryMatch(
                MatchStatus.EXCLUDED, {"matched_on": ["name"], "confidence": "medium"}
            )
        }
    )

    verification = await verification_service.run_verification(
        db, provider.id, VerificationType.EXCLUSION_REGISTRY_PRIMARY, registry, now=NOW
    )

    assert verification.status == VerificationStatus.FAILED.value
    assert verification.details["match_status"] == "excluded"
    assert verification.next_check_at is not None
    alerts = alert_service.list_alerts(db, provider_id=provider.id)
    assert [a.alert_type for a in alerts] == [AlertType.EXCLUSION_MATCH.value]
    assert alerts[0].severity == AlertSeverity.CRITICAL.value
    assert _phase_status(db, provider, CredentialingPhase.EXCLUSION_CHECK) == PhaseStatus.FAILED.value


async def test_lookup_timeout_needs_review(db, provider):
    async def slow_lookup(verification_type, identity):
        await asyncio.sleep(5)

    verification = await verification_service.run_verification(
        db, provider.id, VerificationType.EXCLUSION_REGISTRY_SECONDARY, slow_lookup, now=NOW, timeout=0.01
    )

    assert verification.status == VerificationStatus.REQUIRES_REVIEW.value
    assert "timed out" in verification.notes
    alerts = alert_service.list_alerts(db, provider_id=provider.id)
    assert [a.alert_type for a in alerts] == [AlertType.VERIFICATION_NEEDS_REVIEW.value]
    assert alerts[0].severity == AlertSeverity.WARNING.value


async def test_lookup_error_becomes_requires_review(db, provider):
    async def broken_lookup(verification_type, identity):
        raise RegistryLookupError("Registry returned garbage")

    verification = await verification_service.run_verification(
        db, provider.id, VerificationType.IDENTITY_NUMBER, broken_lookup, now=NOW
    )
    assert verification.status == VerificationStatus.REQUIRES_REVIEW.value
    assert verification.notes == "Registry returned garbage"


async def test_batch_skips_identity_without_number(db, registry):
    provider = make_provider(db, npi_number=None)

    outcomes = await verification_service.run_batch(db, provider.id, registry, actor_id=ADMIN_ID, now=NOW)

    by_type = {o.verification_type: o for o in outcomes}
    assert by_type[VerificationType.IDENTITY_NUMBER].skipped is True
    assert VerificationType.CONTROLLED_SUBSTANCE_REGISTRATION not in by_type
    assert by_type[VerificationType.EXCLUSION_REGISTRY_PRIMARY].status == VerificationStatus.VERIFIED
    assert by_type[VerificationType.EXCLUSION_REGISTRY_SECONDARY].status == VerificationStatus.VERIFIED
    assert [call[0] for call in registry.calls] == [
        VerificationType.EXCLUSION_REGISTRY_PRIMARY,
        VerificationType.EXCLUSION_REGISTRY_SECONDARY,
    ]


async def test_batch_includes_dea_when_on_file(db, registry):
    provider = make_provider(db, dea_number="BD1234563")

    outcomes = await verification_service.run_batch(db, provider.id, registry, now=NOW)

    assert [o.verification_type for o in outcomes] == [
        VerificationType.IDENTITY_NUMBER,
        VerificationType.CONTROLLED_SUBSTANCE_REGISTRATION,
        VerificationType.EXCLUSION_REGISTRY_PRIMARY,
        VerificationType.EXCLUSION_REGISTRY_SECONDARY,
    ]
    assert all(o.status == VerificationStatus.VERIFIED for o in outcomes)


async def test_batch_reports_errors_and_continues(db, provider, registry, monkeypatch):
    from credentialing.core.exceptions import ConflictError

    original = verification_service.run_verification

    async def flaky(db, provider_id, verification_type, lookup, **kwargs):
        if verification_type == VerificationType.EXCLUSION_REGISTRY_PRIMARY:
            raise ConflictError("Credentialing record was modified by another request; retry")
        return await original(db, provider_id, verification_type, lookup, **kwargs)

    monkeypatch.setattr(verification_service, "run_verification", flaky)
    outcomes = await verification_service.run_batch(db, provider.id, registry, now=NOW)

    by_type = {o.verification_type: o for o in outcomes}
    assert by_type[VerificationType.EXCLUSION_REGISTRY_PRIMARY].error is not None
    assert by_type[VerificationType.EXCLUSION_REGISTRY_SECONDARY].status == VerificationStatus.VERIFIED
    assert by_type[VerificationType.IDENTITY_NUMBER].status == VerificationStatus.VERIFIED
