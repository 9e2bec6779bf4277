"""Tests for credentialing notes."""

from datetime import timedelta

import pytest

from conftest import ADMIN_ID, NOW
from credentialing.core.exceptions import ValidationError
from credentialing.db.enums import AuditEventType, NoteCategory
from credentialing.services import audit_service, note_service, record_service


@pytest.fixture
def record(db, provider):
    record = record_service.get_or_create_record(db, provider.id, ADMIN_ID, NOW)
    db.commit()
    return record


def test_sanitize_strips_scripts_and_keeps_formatting():
    html = '<p>Board <strong>confirmed</strong></p><script>alert("x")</script>'
    assert note_service.sanitize_html(html) == "<p>Board <strong>confirmed</strong></p>"


def test_add_note_sanitizes_and_audits(db, provider, record):
    note = note_service.add_note(
        db,
        record.id,
        ADMIN_ID,
        '<em>Called the board</em><img src=x onerror="boom">',
        category=NoteCategory.FOLLOW_UP,
        now=NOW + timedelta(minutes=5),
    )

    assert note.body == "<em>Called the board</em>"
    assert note.category == "follow_up"
    assert note.is_internal is True
    latest = audit_service.list_events(db, provider.id, limit=1)[0]
    assert latest.event_type == AuditEventType.NOTE_ADDED.value
    assert latest.details == {"category": "follow_up", "is_internal": True}


def test_unknown_category_rejected(db, record):
    with pytest.raises(ValidationError):
        note_service.add_note(db, record.id, ADMIN_ID, "text", category="gossip")


def test_blank_note_rejected(db, record):
    with pytest.raises(ValidationError):
        note_service.add_note(db, record.id, ADMIN_ID, "<script>only()</script>")


def test_overlong_note_rejected(db, record):
    with pytest.raises(ValidationError):
        note_service.add_note(db, record.id, ADMIN_ID, "x" * (note_service.MAX_NOTE_LENGTH + 1))


def test_internal_notes_hidden_from_provider_view(db, record):
    note_service.add_note(
        db, record.id, ADMIN_ID, "Visible to provider", is_internal=False, now=NOW + timedelta(minutes=1)
    )
    note_service.add_note(
        db, record.id, ADMIN_ID, "Admin only", category=NoteCategory.CONCERN, now=NOW + timedelta(minutes=2)
    )

    everything = [n.body for n in note_service.list_notes(db, record.id)]
    assert everything == ["Admin only", "Visible to provider", record_service.INITIAL_NOTE]

    public = [n.body for n in note_service.list_notes(db, record.id, include_internal=False)]
    assert public == ["Visible to provider"]
