"""Credentialing record lifecycle and per-provider write serialization."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from credentialing.core.exceptions import ConflictError, NotFoundError
from credentialing.core.phase_rules import compute_overall_status
from credentialing.core.structured_logging import build_log_context
from credentialing.db.enums import (
    PHASE_ORDER,
    AuditEventType,
    CredentialingStatus,
    NoteCategory,
    PhaseStatus,
)
from credentialing.db.models import CredentialingNote, CredentialingRecord, PhaseEntry, Provider
from credentialing.services import audit_service, notification_service
from credentialing.utils.dates import utc_now

logger = logging.getLogger(__name__)

INITIAL_NOTE = (
    "Credentialing process initialized. Waiting for provider to upload required documents."
)


def get_provider(db: Session, provider_id: UUID) -> Provider:
    """Get a provider or raise NotFoundError."""
    provider = db.get(Provider, provider_id)
    if not provider:
        raise NotFoundError(f"Provider {provider_id} not found")
    return provider


def get_record(db: Session, provider_id: UUID) -> CredentialingRecord | None:
    """Get a provider's credentialing record (phases eager-loaded)."""
    return db.execute(
        select(CredentialingRecord)
        .options(selectinload(CredentialingRecord.phases))
        .where(CredentialingRecord.provider_id == provider_id)
    ).scalar_one_or_none()


def get_record_by_id(db: Session, record_id: UUID) -> CredentialingRecord:
    record = db.get(CredentialingRecord, record_id)
    if not record:
        raise NotFoundError(f"Credentialing record {record_id} not found")
    return record


def _create_record(
    db: Session,
    provider_id: UUID,
    actor_id: str | None,
    now: datetime,
) -> CredentialingRecord:
    record = CredentialingRecord(
        provider_id=provider_id,
        status=CredentialingStatus.NOT_STARTED.value,
        created_at=now,
        updated_at=now,
    )
    record.phases = [
        PhaseEntry(phase=phase.value, position=position, status=PhaseStatus.PENDING.value)
        for position, phase in enumerate(PHASE_ORDER)
    ]
    db.add(record)
    db.flush()

    db.add(
        CredentialingNote(
            record_id=record.id,
            author_id=audit_service.SYSTEM_ACTOR,
            category=NoteCategory.GENERAL.value,
            body=INITIAL_NOTE,
            is_internal=True,
            created_at=now,
        )
    )
    audit_service.log_event(
        db=db,
        provider_id=provider_id,
        event_type=AuditEventType.RECORD_CREATED,
        actor_id=actor_id,
        target_type="credentialing_record",
        target_id=record.id,
    )
    notification_service.notify_welcome(db, provider_id, now)
    logger.info(
        "Credentialing record created",
        extra=build_log_context(provider_id=str(provider_id), record_id=str(record.id)),
    )
    return record


def get_or_create_record(
    db: Session,
    provider_id: UUID,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> CredentialingRecord:
    """
    Return the provider's record, creating it (with all 8 phases) on first use.

    Records are never deleted. A concurrent creator losing the unique
    constraint race rolls back and re-reads the winner's row; creation is
    always the first write of a unit of work.
    """
    record = get_record(db, provider_id)
    if record:
        return record

    get_provider(db, provider_id)
    try:
        record = _create_record(db, provider_id, actor_id, now or utc_now())
    except IntegrityError:
        db.rollback()
        record = get_record(db, provider_id)
        if not record:
            raise
    return record


def lock_record(
    db: Session,
    provider_id: UUID,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> CredentialingRecord:
    """
    Load the record with a row lock (SELECT ... FOR UPDATE).

    The fresh read replaces any stale state in the session, so prerequisite
    checks see what the previous writer committed.
    """
    record = get_or_create_record(db, provider_id, actor_id, now)
    return db.execute(
        select(CredentialingRecord)
        .options(selectinload(CredentialingRecord.phases))
        .where(CredentialingRecord.id == record.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one()


def refresh_status(record: CredentialingRecord, now: datetime) -> CredentialingStatus:
    """
    Recompute and cache the derived status.

    Always touches `updated_at`, which bumps the record version so that a
    concurrent writer holding the old version fails instead of overwriting.
    """
    status = compute_overall_status(record)
    if status == CredentialingStatus.APPROVED and record.completed_at is None:
        record.completed_at = now
    record.status = status.value
    record.updated_at = now
    return status


@contextmanager
def record_write(
    db: Session,
    provider_id: UUID,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> Iterator[CredentialingRecord]:
    """
    Serialize one write against a provider's credentialing state.

    Yields the locked record; on success refreshes the cached status and
    commits. Any error rolls back, leaving the record unchanged.
    """
    now = now or utc_now()
    try:
        record = lock_record(db, provider_id, actor_id, now)
        yield record
        refresh_status(record, now)
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning(
            "Concurrent credentialing write rejected",
            extra=build_log_context(provider_id=str(provider_id), actor_id=actor_id),
        )
        raise ConflictError(
            "Credentialing record was modified by another request; retry"
        ) from exc
    except Exception:
        db.rollback()
        raise


def mark_submitted(record: CredentialingRecord, now: datetime) -> None:
    """Stamp the first provider submission (moves not_started -> pending)."""
    if record.submitted_at is None:
        record.submitted_at = now


def list_records(
    db: Session,
    statuses: list[CredentialingStatus] | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[CredentialingRecord]:
    """List records by cached status, oldest first (longest waiting on top)."""
    query = select(CredentialingRecord).options(
        selectinload(CredentialingRecord.phases),
        selectinload(CredentialingRecord.provider),
    )
    if statuses:
        query = query.where(CredentialingRecord.status.in_([s.value for s in statuses]))
    query = query.order_by(CredentialingRecord.created_at.asc()).offset(offset).limit(limit)
    return list(db.execute(query).scalars())


def list_pending_records(db: Session, limit: int = 100, offset: int = 0) -> list[CredentialingRecord]:
    """Records awaiting admin work: submitted or in progress."""
    return list_records(
        db,
        statuses=[CredentialingStatus.PENDING, CredentialingStatus.IN_PROGRESS],
        limit=limit,
        offset=offset,
    )
