"""Tests for the per-provider audit hash chain."""

from sqlalchemy import update

from conftest import ADMIN_ID, NOW, make_provider
from credentialing.db.enums import AuditEventType, CredentialingPhase
from credentialing.db.models import AuditLog
from credentialing.services import audit_service, phase_service


def test_chain_links_each_entry_to_the_previous(db, provider):
    phase_service.start_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, NOW)
    phase_service.complete_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, now=NOW)

    events = list(reversed(audit_service.list_events(db, provider.id)))
    assert [e.sequence for e in events] == [1, 2, 3]
    assert events[0].prev_hash == audit_service.GENESIS_HASH
    for previous, current in zip(events, events[1:]):
        assert current.prev_hash == previous.entry_hash
    assert audit_service.verify_chain(db, provider.id)


def test_chains_are_per_provider(db, provider):
    other = make_provider(db, first_name="Sam", last_name="Lee")
    phase_service.start_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, NOW)
    phase_service.start_phase(db, other.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, NOW)

    assert [e.sequence for e in audit_service.list_events(db, other.id)] == [2, 1]
    assert audit_service.verify_chain(db, other.id)


def test_tampered_details_break_the_chain(db, provider):
    phase_service.start_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, ADMIN_ID, NOW)
    db.execute(
        update(AuditLog)
        .where(AuditLog.provider_id == provider.id, AuditLog.sequence == 1)
        .values(actor_id="someone-else")
    )
    db.commit()

    assert audit_service.verify_chain(db, provider.id) is False


def test_system_actor_used_when_none_given(db, provider):
    phase_service.start_phase(db, provider.id, CredentialingPhase.DOCUMENT_REVIEW, now=NOW)
    events = audit_service.list_events(db, provider.id)
    assert {e.actor_id for e in events} == {audit_service.SYSTEM_ACTOR}
    assert events[0].event_type == AuditEventType.PHASE_STARTED.value


def test_canonical_json_is_order_independent():
    assert audit_service.canonical_json({"b": 1, "a": 2}) == audit_service.canonical_json({"a": 2, "b": 1})
    assert audit_service.canonical_json(None) == "{}"
