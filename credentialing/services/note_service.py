"""Credentialing notes - append-only annotations on a record.

Notes are never edited or deleted; a correction is a new note.
"""

from datetime import datetime
from uuid import UUID

import nh3
from sqlalchemy import select
from sqlalchemy.orm import Session

from credentialing.core.exceptions import ValidationError
from credentialing.db.enums import AuditEventType, NoteCategory
from credentialing.db.models import CredentialingNote
from credentialing.services import audit_service, record_service
from credentialing.utils.dates import utc_now

# Allowed HTML tags for admin rich text notes
ALLOWED_TAGS = {"p", "br", "strong", "em", "ul", "ol", "li", "a", "blockquote", "code"}
ALLOWED_ATTRIBUTES = {"a": {"href", "target"}}
MAX_NOTE_LENGTH = 10000


def sanitize_html(html: str) -> str:
    """Sanitize HTML to prevent XSS, allowing only safe rich text tags."""
    return nh3.clean(html, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES)


def add_note(
    db: Session,
    record_id: UUID,
    author_id: str,
    body: str,
    category: NoteCategory | str = NoteCategory.GENERAL,
    is_internal: bool = True,
    now: datetime | None = None,
) -> CredentialingNote:
    """Append a note to a credentialing record."""
    try:
        category = NoteCategory(category)
    except ValueError as exc:
        raise ValidationError(f"Unknown note category: {category}") from exc

    clean_body = sanitize_html(body or "").strip()
    if not clean_body:
        raise ValidationError("Note text is required")
    if len(clean_body) > MAX_NOTE_LENGTH:
        raise ValidationError(f"Note exceeds {MAX_NOTE_LENGTH} characters")

    now = now or utc_now()
    record = record_service.get_record_by_id(db, record_id)
    with record_service.record_write(db, record.provider_id, author_id, now):
        note = CredentialingNote(
            record_id=record_id,
            author_id=author_id,
            category=category.value,
            body=clean_body,
            is_internal=is_internal,
            created_at=now,
        )
        db.add(note)
        db.flush()
        audit_service.log_event(
            db=db,
            provider_id=record.provider_id,
            event_type=AuditEventType.NOTE_ADDED,
            actor_id=author_id,
            target_type="credentialing_note",
            target_id=note.id,
            details={"category": category.value, "is_internal": is_internal},
        )
    db.refresh(note)
    return note


def list_notes(
    db: Session,
    record_id: UUID,
    include_internal: bool = True,
) -> list[CredentialingNote]:
    """List notes for a record, newest first."""
    query = select(CredentialingNote).where(CredentialingNote.record_id == record_id)
    if not include_internal:
        query = query.where(CredentialingNote.is_internal.is_(False))
    query = query.order_by(CredentialingNote.created_at.desc(), CredentialingNote.id.desc())
    return list(db.execute(query).scalars())
