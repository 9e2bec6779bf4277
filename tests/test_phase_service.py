"""Tests for the credentialing phase state machine."""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import ADMIN_ID, NOW, make_provider
from credentialing.core.exceptions import (
    ConflictError,
    OrderViolationError,
    PhaseTransitionError,
    UnverifiedPrerequisiteError,
    ValidationError,
)
from credentialing.core.phase_rules import (
    current_phase,
    days_in_process,
    progress_fraction,
)
from credentialing.db.base import Base
from credentialing.db.enums import (
    PHASE_ORDER,
    AuditEventType,
    CredentialingPhase,
    CredentialingStatus,
    PhaseStatus,
    VerificationType,
)
from credentialing.services import (
    audit_service,
    note_service,
    phase_service,
    record_service,
    verification_service,
)
from credentialing.services.registry_lookup import MatchStatus, RegistryMatch, RegistryNotFound


def _statuses(record):
    return {entry.phase: entry.status for entry in record.phases}


async def _verify_all(db, provider, registry):
    for verification_type in (
        VerificationType.IDENTITY_NUMBER,
        VerificationType.EXCLUSION_REGISTRY_PRIMARY,
        VerificationType.EXCLUSION_REGISTRY_SECONDARY,
    ):
        await verification_service.run_verification(
            db, provider.id, verification_type, registry, actor_id=ADMIN_ID, now=NOW
        )


def test_record_created_with_eight_pending_phases(db, provider):
    record = record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    db.commit()

    assert [entry.phase for entry in record.phases] == [p.value for p in PHASE_ORDER]
    assert all(entry.status == PhaseStatus.PENDING.value for entry in record.phases)
    assert record.status == CredentialingStatus.NOT_STARTED.value
    assert progress_fraction(record) == 0
    assert current_phase(record) == CredentialingPhase.DOCUMENT_REVIEW

    notes = note_service.list_notes(db, record.id)
    assert [n.body for n in notes] == [record_service.INITIAL_NOTE]
    assert notes[0].is_internal is True

    events = audit_service.list_events(db, provider.id)
    assert [e.event_type for e in events] == [AuditEventType.RECORD_CREATED.value]


def test_get_or_create_returns_existing_record(db, provider):
    first = record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    db.commit()
    second = record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    assert first.id == second.id
    assert audit_service.count_events(db, provider.id) == 1


def test_start_phase_moves_record_in_progress(db, provider):
    record = phase_service.start_phase(
        db, provider.id, CredentialingPhase.LICENSE_VERIFICATION, actor_id=ADMIN_ID, now=NOW
    )

    assert _statuses(record)["license_verification"] == PhaseStatus.IN_PROGRESS.value
    assert record.status == CredentialingStatus.IN_PROGRESS.value
    assert current_phase(record) == CredentialingPhase.LICENSE_VERIFICATION


def test_start_in_progress_phase_is_noop(db, provider):
    phase_service.start_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, NOW)
    before = audit_service.count_events(db, provider.id)
    phase_service.start_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, NOW)
    assert audit_service.count_events(db, provider.id) == before


def test_out_of_order_completion_is_rejected(db, provider):
    record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    db.commit()

    with pytest.raises(OrderViolationError) as exc_info:
        phase_service.complete_phase(
            db, provider.id, CredentialingPhase.EDUCATION_VERIFICATION, actor_id=ADMIN_ID, now=NOW
        )

    assert exc_info.value.blocking_phases == [
        "document_review",
        "identity_verification",
        "license_verification",
    ]
    record = record_service.get_record(db, provider.id)
    assert _statuses(record)["education_verification"] == PhaseStatus.PENDING.value


@pytest.mark.parametrize("index", range(1, len(PHASE_ORDER)))
async def test_skipping_a_phase_is_rejected_at_every_position(db, provider, registry, index):
    await _verify_all(db, provider, registry)
    for phase in PHASE_ORDER[: index - 1]:
        phase_service.complete_phase(db, provider.id, phase, ADMIN_ID, now=NOW)
    skipped, target = PHASE_ORDER[index - 1], PHASE_ORDER[index]

    with pytest.raises(OrderViolationError) as exc_info:
        phase_service.complete_phase(db, provider.id, target, ADMIN_ID, now=NOW)

    assert exc_info.value.blocking_phases == [skipped.value]
    record = record_service.get_record(db, provider.id)
    assert _statuses(record)[target.value] == PhaseStatus.PENDING.value
    assert progress_fraction(record) == (index - 1) / len(PHASE_ORDER)


def test_complete_phase_in_order(db, provider):
    record = phase_service.complete_phase(
        db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, actor_id=ADMIN_ID, notes="All in", now=NOW
    )
    entry = record.phases[0]
    assert entry.status == PhaseStatus.COMPLETED.value
    assert entry.notes == "All in"
    assert entry.started_at is not None
    assert entry.completed_at is not None
    assert progress_fraction(record) == 0.125


def test_completed_phase_cannot_restart_or_recomplete(db, provider):
    phase_service.complete_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, now=NOW)

    with pytest.raises(PhaseTransitionError):
        phase_service.start_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, NOW)
    with pytest.raises(PhaseTransitionError):
        phase_service.complete_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, now=NOW)


def test_automatable_phase_needs_verified_verification(db, provider):
    phase_service.complete_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, now=NOW)

    with pytest.raises(UnverifiedPrerequisiteError) as exc_info:
        phase_service.complete_phase(
            db, provider.id, CredentialingPhase.IDENTITY_VERIFICATION, ADMIN_ID, now=NOW
        )
    assert exc_info.value.unverified == {"identity_number": "not_started"}


def test_advance_phase_dispatches_and_rejects_other_targets(db, provider):
    record = phase_service.advance_phase(
        db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, PhaseStatus.IN_PROGRESS, ADMIN_ID, now=NOW
    )
    assert _statuses(record)["document_review"] == PhaseStatus.IN_PROGRESS.value

    record = phase_service.advance_phase(
        db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, PhaseStatus.COMPLETED, ADMIN_ID, now=NOW
    )
    assert _statuses(record)["document_review"] == PhaseStatus.COMPLETED.value

    with pytest.raises(ValidationError):
        phase_service.advance_phase(
            db, provider.id, CredentialingPhase.LICENSE_VERIFICATION, PhaseStatus.FAILED, ADMIN_ID
        )


async def test_completing_all_phases_approves_and_freezes_days(db, provider, registry):
    await _verify_all(db, provider, registry)

    progress = []
    for phase in PHASE_ORDER:
        record = phase_service.complete_phase(db, provider.id, phase, ADMIN_ID, now=NOW + timedelta(days=3))
        progress.append(progress_fraction(record))

    assert progress == sorted(progress)
    assert progress[-1] == 1
    assert record.status == CredentialingStatus.APPROVED.value
    assert record.completed_at is not None
    assert current_phase(record) is None

    frozen = days_in_process(record, NOW + timedelta(days=3))
    assert frozen == 3
    assert days_in_process(record, NOW + timedelta(days=90)) == frozen

    events = [e.event_type for e in audit_service.list_events(db, provider.id, limit=1)]
    assert events == [AuditEventType.RECORD_APPROVED.value]


async def test_approved_record_is_terminal(db, provider, registry):
    await _verify_all(db, provider, registry)
    for phase in PHASE_ORDER:
        phase_service.complete_phase(db, provider.id, phase, ADMIN_ID, now=NOW)

    with pytest.raises(ConflictError):
        phase_service.reject_record(
            db, provider.id, CredentialingPhase.FINAL_REVIEW, "Too late", ADMIN_ID, NOW
        )


def test_reject_requires_reason(db, provider):
    with pytest.raises(ValidationError):
        phase_service.reject_record(db, provider.id, CredentialingPhase.LICENSE_VERIFICATION, "  ", ADMIN_ID)


def test_reject_then_reopen(db, provider):
    phase_service.complete_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, now=NOW)
    record = phase_service.reject_record(
        db,
        provider.id,
        CredentialingPhase.LICENSE_VERIFICATION,
        "Licence suspended by state board",
        ADMIN_ID,
        NOW + timedelta(days=2),
    )

    assert record.status == CredentialingStatus.REJECTED.value
    assert record.rejection_reason == "Licence suspended by state board"
    assert _statuses(record)["license_verification"] == PhaseStatus.FAILED.value
    assert days_in_process(record, NOW + timedelta(days=40)) == 2

    with pytest.raises(ConflictError):
        phase_service.start_phase(db, provider.id, CredentialingPhase.LICENSE_VERIFICATION, ADMIN_ID)

    record = phase_service.reopen_record(db, provider.id, ADMIN_ID, NOW + timedelta(days=5))
    assert record.status == CredentialingStatus.IN_PROGRESS.value
    assert record.rejected_at is None
    assert record.rejection_reason is None
    assert _statuses(record)["license_verification"] == PhaseStatus.PENDING.value
    assert _statuses(record)["document_review"] == PhaseStatus.COMPLETED.value


def test_reopen_requires_rejected_record(db, provider):
    record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    db.commit()
    with pytest.raises(ConflictError):
        phase_service.reopen_record(db, provider.id, ADMIN_ID)


def test_failed_transition_leaves_record_unchanged(db, provider):
    record = record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    db.commit()
    version = record.version
    events = audit_service.count_events(db, provider.id)

    with pytest.raises(OrderViolationError):
        phase_service.complete_phase(db, provider.id, CredentialingPhase.FINAL_REVIEW, ADMIN_ID, now=NOW)

    record = record_service.get_record(db, provider.id)
    assert record.version == version
    assert audit_service.count_events(db, provider.id) == events


async def test_failed_recheck_lets_admin_revoke_approval(db, provider, registry):
    await _verify_all(db, provider, registry)
    for phase in PHASE_ORDER:
        phase_service.complete_phase(db, provider.id, phase, ADMIN_ID, now=NOW)

    registry.results[VerificationType.EXCLUSION_REGISTRY_PRIMARY] = RegistryMatch(MatchStatus.EXCLUDED)
    await verification_service.run_verification(
        db, provider.id, VerificationType.EXCLUSION_REGISTRY_PRIMARY, registry, now=NOW + timedelta(days=30)
    )
    # a failed re-check alone never changes an approved record
    record = record_service.get_record(db, provider.id)
    assert record.status == CredentialingStatus.APPROVED.value

    # only a phase backed by the failed check can be failed
    with pytest.raises(ConflictError):
        phase_service.reject_record(
            db, provider.id, CredentialingPhase.FINAL_REVIEW, "Excluded", ADMIN_ID, NOW + timedelta(days=31)
        )

    record = phase_service.reject_record(
        db,
        provider.id,
        CredentialingPhase.EXCLUSION_CHECK,
        "Listed on the OIG exclusion list",
        ADMIN_ID,
        NOW + timedelta(days=31),
    )
    assert record.status == CredentialingStatus.REJECTED.value
    assert record.completed_at is None
    assert _statuses(record)["exclusion_check"] == PhaseStatus.FAILED.value
    assert progress_fraction(record) == 7 / 8

    [event] = audit_service.list_events(db, provider.id, limit=1)
    assert event.event_type == AuditEventType.RECORD_REJECTED.value
    assert event.details["approval_revoked"] is True
    assert event.details["verifications"] == {"exclusion_registry_primary": "failed"}

    # a new cycle for the failed phase
    record = phase_service.reopen_record(db, provider.id, ADMIN_ID, NOW + timedelta(days=40))
    assert record.status == CredentialingStatus.IN_PROGRESS.value
    assert _statuses(record)["exclusion_check"] == PhaseStatus.PENDING.value

    registry.results[VerificationType.EXCLUSION_REGISTRY_PRIMARY] = RegistryNotFound("Reinstated")
    await verification_service.run_verification(
        db, provider.id, VerificationType.EXCLUSION_REGISTRY_PRIMARY, registry, now=NOW + timedelta(days=41)
    )
    record = phase_service.complete_phase(
        db, provider.id, CredentialingPhase.EXCLUSION_CHECK, ADMIN_ID, now=NOW + timedelta(days=42)
    )
    assert record.status == CredentialingStatus.APPROVED.value
    assert record.completed_at is not None


async def test_progress_never_decreases_across_reject_and_reopen(db, provider, registry):
    seen = []

    record = record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    db.commit()
    seen.append(progress_fraction(record))

    record = phase_service.complete_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, now=NOW)
    seen.append(progress_fraction(record))
    record = phase_service.start_phase(db, provider.id, CredentialingPhase.LICENSE_VERIFICATION, ADMIN_ID, NOW)
    seen.append(progress_fraction(record))
    record = phase_service.reject_record(
        db, provider.id, CredentialingPhase.LICENSE_VERIFICATION, "Licence lapsed", ADMIN_ID, NOW
    )
    seen.append(progress_fraction(record))
    record = phase_service.reopen_record(db, provider.id, ADMIN_ID, NOW + timedelta(days=1))
    seen.append(progress_fraction(record))

    await _verify_all(db, provider, registry)
    seen.append(progress_fraction(record_service.get_record(db, provider.id)))

    for phase in PHASE_ORDER[1:]:
        record = phase_service.start_phase(db, provider.id, phase, ADMIN_ID, NOW + timedelta(days=2))
        seen.append(progress_fraction(record))
        record = phase_service.complete_phase(db, provider.id, phase, ADMIN_ID, now=NOW + timedelta(days=2))
        seen.append(progress_fraction(record))

    assert seen == sorted(seen)
    assert seen[-1] == 1
    assert record.status == CredentialingStatus.APPROVED.value


def test_concurrent_completion_lets_one_writer_win(tmp_path):
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(engine)
    make_session = sessionmaker(bind=engine, autoflush=False)

    try:
        with make_session() as setup:
            provider_id = make_provider(setup).id
            record_service.get_or_create_record(setup, provider_id, ADMIN_ID, NOW)
            setup.commit()

        with make_session() as first, make_session() as second:
            with pytest.raises(ConflictError):
                with record_service.record_write(second, provider_id, "admin-b", NOW) as stale:
                    phase_service.complete_phase(
                        first, provider_id, CredentialingPhase.DOCUMENT_REVIEW, "admin-a", now=NOW
                    )
                    entry = stale.phases[0]
                    assert entry.status == PhaseStatus.PENDING.value
                    entry.status = PhaseStatus.COMPLETED.value
                    entry.started_at = entry.completed_at = NOW

        with make_session() as check:
            record = record_service.get_record(check, provider_id)
            assert _statuses(record)["document_review"] == PhaseStatus.COMPLETED.value
            completions = [
                e
                for e in audit_service.list_events(check, provider_id)
                if e.event_type == AuditEventType.PHASE_COMPLETED.value
            ]
            assert [e.actor_id for e in completions] == ["admin-a"]
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()
