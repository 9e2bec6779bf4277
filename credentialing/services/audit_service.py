"""Audit logging service - append-only credentialing decision trail.

Security guidelines:
- NEVER put identity numbers, names or document contents in details
- Use ids and enum values instead of raw data
"""

import hashlib
import json
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from credentialing.db.enums import AuditEventType
from credentialing.db.models import AuditLog

GENESIS_HASH = "0" * 64
SYSTEM_ACTOR = "system"


def canonical_json(obj: dict | None) -> str:
    """
    Serialize object to canonical JSON for consistent hashing.

    Uses sorted keys, compact separators, and str() for non-JSON types.
    """
    return json.dumps(obj or {}, sort_keys=True, separators=(",", ":"), default=str)


def compute_entry_hash(
    prev_hash: str,
    provider_id: str,
    sequence: int,
    event_type: str,
    actor_id: str,
    target_type: str,
    target_id: str,
    details_json: str,
) -> str:
    """Hash = SHA256(all immutable fields joined with |)."""
    data = "|".join(
        [
            prev_hash,
            provider_id,
            str(sequence),
            event_type,
            actor_id,
            target_type,
            target_id,
            details_json,
        ]
    )
    return hashlib.sha256(data.encode()).hexdigest()


def _last_entry(db: Session, provider_id: UUID) -> AuditLog | None:
    return db.execute(
        select(AuditLog)
        .where(AuditLog.provider_id == provider_id)
        .order_by(AuditLog.sequence.desc())
        .limit(1)
    ).scalar_one_or_none()


def log_event(
    db: Session,
    provider_id: UUID,
    event_type: AuditEventType,
    actor_id: str | None = None,
    target_type: str | None = None,
    target_id: UUID | str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog:
    """
    Append an audit event to the provider's hash chain.

    Callers hold the per-provider lock, so sequence numbers are assigned
    without gaps. The entry is flushed, not committed.
    """
    last = _last_entry(db, provider_id)
    prev_hash = last.entry_hash if last else GENESIS_HASH
    sequence = (last.sequence + 1) if last else 1
    actor = actor_id or SYSTEM_ACTOR
    target_id_str = str(target_id) if target_id else None

    entry = AuditLog(
        provider_id=provider_id,
        sequence=sequence,
        event_type=event_type.value,
        actor_id=actor,
        target_type=target_type,
        target_id=target_id_str,
        details=details,
        prev_hash=prev_hash,
        entry_hash=compute_entry_hash(
            prev_hash=prev_hash,
            provider_id=str(provider_id),
            sequence=sequence,
            event_type=event_type.value,
            actor_id=actor,
            target_type=target_type or "",
            target_id=target_id_str or "",
            details_json=canonical_json(details),
        ),
    )
    db.add(entry)
    db.flush()
    return entry


def list_events(db: Session, provider_id: UUID, limit: int = 100) -> list[AuditLog]:
    """Most recent audit events for a provider, newest first."""
    return list(
        db.execute(
            select(AuditLog)
            .where(AuditLog.provider_id == provider_id)
            .order_by(AuditLog.sequence.desc())
            .limit(limit)
        ).scalars()
    )


def count_events(db: Session, provider_id: UUID) -> int:
    return db.execute(
        select(func.count()).select_from(AuditLog).where(AuditLog.provider_id == provider_id)
    ).scalar_one()


def verify_chain(db: Session, provider_id: UUID) -> bool:
    """Recompute every hash in the provider's chain; False on any mismatch."""
    entries = db.execute(
        select(AuditLog)
        .where(AuditLog.provider_id == provider_id)
        .order_by(AuditLog.sequence.asc())
    ).scalars()

    prev_hash = GENESIS_HASH
    for entry in entries:
        expected = compute_entry_hash(
            prev_hash=prev_hash,
            provider_id=str(entry.provider_id),
            sequence=entry.sequence,
            event_type=entry.event_type,
            actor_id=entry.actor_id,
            target_type=entry.target_type or "",
            target_id=entry.target_id or "",
            details_json=canonical_json(entry.details),
        )
        if entry.prev_hash != prev_hash or entry.entry_hash != expected:
            return False
        prev_hash = entry.entry_hash
    return True
