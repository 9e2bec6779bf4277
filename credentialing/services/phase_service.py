"""Phase state machine: admin transitions, rejection/reopen, automated outcomes."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from credentialing.core.exceptions import (
    ConflictError,
    OrderViolationError,
    PhaseTransitionError,
    UnverifiedPrerequisiteError,
    ValidationError,
)
from credentialing.core.phase_rules import (
    blocking_phases,
    compute_overall_status,
    current_phase,
    phase_for_verification,
    phase_statuses,
    progress_percentage,
    reverification_problems,
    unverified_prerequisites,
)
from credentialing.core.structured_logging import build_log_context
from credentialing.db.enums import (
    TERMINAL_CREDENTIALING_STATUSES,
    AuditEventType,
    CredentialingPhase,
    CredentialingStatus,
    PhaseStatus,
    VerificationStatus,
    VerificationType,
)
from credentialing.db.models import CredentialingRecord, PhaseEntry, Verification
from credentialing.services import audit_service, notification_service, record_service
from credentialing.utils.dates import utc_now

logger = logging.getLogger(__name__)


def _get_entry(record: CredentialingRecord, phase: CredentialingPhase) -> PhaseEntry:
    for entry in record.phases:
        if entry.phase == phase.value:
            return entry
    # Records are always created with all eight phases
    raise PhaseTransitionError(f"Phase {phase.value} missing from record", phase.value)


def _ensure_not_terminal(record: CredentialingRecord) -> None:
    status = compute_overall_status(record)
    if status in TERMINAL_CREDENTIALING_STATUSES:
        raise ConflictError(f"Credentialing record is {status.value}; no phase transitions allowed")


def verification_statuses(
    db: Session, provider_id: UUID
) -> dict[VerificationType, VerificationStatus]:
    """Current status per verification type (absent rows are omitted)."""
    rows = db.execute(
        select(Verification.verification_type, Verification.status).where(
            Verification.provider_id == provider_id
        )
    ).all()
    return {VerificationType(vtype): VerificationStatus(status) for vtype, status in rows}


def _phase_audit(
    db: Session,
    record: CredentialingRecord,
    entry: PhaseEntry,
    event_type: AuditEventType,
    actor_id: str | None,
    details: dict | None = None,
) -> None:
    audit_service.log_event(
        db=db,
        provider_id=record.provider_id,
        event_type=event_type,
        actor_id=actor_id,
        target_type="credentialing_phase",
        target_id=entry.id,
        details={"phase": entry.phase, **(details or {})},
    )


# =============================================================================
# Admin transitions
# =============================================================================


def start_phase(
    db: Session,
    provider_id: UUID,
    phase: CredentialingPhase,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> CredentialingRecord:
    """
    Move a phase to in_progress.

    Allowed at any time unless the phase is already completed or the record
    is terminal. Starting an in-progress phase is a no-op.
    """
    now = now or utc_now()
    with record_service.record_write(db, provider_id, actor_id, now) as record:
        _ensure_not_terminal(record)
        entry = _get_entry(record, phase)
        if entry.status == PhaseStatus.COMPLETED.value:
            raise PhaseTransitionError(f"Phase {phase.value} is already completed", phase.value)
        if entry.status != PhaseStatus.IN_PROGRESS.value:
            previous = entry.status
            entry.status = PhaseStatus.IN_PROGRESS.value
            if entry.started_at is None:
                entry.started_at = now
            _phase_audit(
                db, record, entry, AuditEventType.PHASE_STARTED, actor_id, {"from": previous}
            )
    db.refresh(record)
    return record


def complete_phase(
    db: Session,
    provider_id: UUID,
    phase: CredentialingPhase,
    actor_id: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> CredentialingRecord:
    """
    Move a phase to completed.

    Raises:
        OrderViolationError: an earlier phase is not completed
        UnverifiedPrerequisiteError: an automatable phase's backing
            verification is not verified (no manual override)
        ConflictError: the record is approved or rejected
    """
    now = now or utc_now()
    with record_service.record_write(db, provider_id, actor_id, now) as record:
        _ensure_not_terminal(record)
        entry = _get_entry(record, phase)
        if entry.status == PhaseStatus.COMPLETED.value:
            raise PhaseTransitionError(f"Phase {phase.value} is already completed", phase.value)

        blocking = blocking_phases(phase_statuses(record), phase)
        if blocking:
            raise OrderViolationError(phase.value, [p.value for p in blocking])

        unverified = unverified_prerequisites(phase, verification_statuses(db, provider_id))
        if unverified:
            raise UnverifiedPrerequisiteError(
                phase.value, {vtype.value: status.value for vtype, status in unverified.items()}
            )

        entry.status = PhaseStatus.COMPLETED.value
        if entry.started_at is None:
            entry.started_at = now
        entry.completed_at = now
        if notes:
            entry.notes = notes
        _phase_audit(db, record, entry, AuditEventType.PHASE_COMPLETED, actor_id)

        if compute_overall_status(record) == CredentialingStatus.APPROVED:
            audit_service.log_event(
                db=db,
                provider_id=provider_id,
                event_type=AuditEventType.RECORD_APPROVED,
                actor_id=actor_id,
                target_type="credentialing_record",
                target_id=record.id,
            )
            notification_service.notify_approved(db, provider_id, now)
            logger.info(
                "Credentialing approved",
                extra=build_log_context(provider_id=str(provider_id), record_id=str(record.id)),
            )
        else:
            notification_service.notify_phase_completed(
                db, provider_id, phase, current_phase(record), progress_percentage(record), now
            )
    db.refresh(record)
    return record


def advance_phase(
    db: Session,
    provider_id: UUID,
    phase: CredentialingPhase,
    target: PhaseStatus,
    actor_id: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> CredentialingRecord:
    """Admin transition of one phase to in_progress or completed."""
    if target == PhaseStatus.IN_PROGRESS:
        return start_phase(db, provider_id, phase, actor_id, now)
    if target == PhaseStatus.COMPLETED:
        return complete_phase(db, provider_id, phase, actor_id, notes, now)
    raise ValidationError(
        f"Phases can only be advanced to in_progress or completed, not {target.value}"
    )


def reject_record(
    db: Session,
    provider_id: UUID,
    phase: CredentialingPhase,
    reason: str,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> CredentialingRecord:
    """
    Fail a phase and reject the record. Only an admin can reject.

    An approved record can be rejected on an automatable phase whose
    re-verification came back failed or requires_review; the completed
    phase is failed and the approval is withdrawn. Reopening then starts a
    new cycle for that phase.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required")

    now = now or utc_now()
    with record_service.record_write(db, provider_id, actor_id, now) as record:
        status = compute_overall_status(record)
        entry = _get_entry(record, phase)
        revoked = status == CredentialingStatus.APPROVED
        if revoked:
            problems = reverification_problems(phase, verification_statuses(db, provider_id))
            if not problems:
                raise ConflictError(
                    f"Credentialing record is approved; {phase.value} can only be failed "
                    "after its re-verification failed or needs review"
                )
        else:
            _ensure_not_terminal(record)
            if entry.status == PhaseStatus.COMPLETED.value:
                raise PhaseTransitionError(
                    f"Phase {phase.value} is completed and cannot be failed", phase.value
                )

        if entry.started_at is None:
            entry.started_at = now
        entry.status = PhaseStatus.FAILED.value
        entry.completed_at = None
        _phase_audit(db, record, entry, AuditEventType.PHASE_FAILED, actor_id)

        record.rejected_at = now
        record.rejection_reason = reason
        details: dict = {"phase": phase.value}
        if revoked:
            record.completed_at = None
            details["approval_revoked"] = True
            details["verifications"] = {vtype.value: s.value for vtype, s in problems.items()}
        audit_service.log_event(
            db=db,
            provider_id=provider_id,
            event_type=AuditEventType.RECORD_REJECTED,
            actor_id=actor_id,
            target_type="credentialing_record",
            target_id=record.id,
            details=details,
        )
    logger.info(
        "Credentialing rejected",
        extra=build_log_context(provider_id=str(provider_id), actor_id=actor_id),
    )
    db.refresh(record)
    return record


def reopen_record(
    db: Session,
    provider_id: UUID,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> CredentialingRecord:
    """Reopen a rejected record: failed phases go back to pending."""
    now = now or utc_now()
    with record_service.record_write(db, provider_id, actor_id, now) as record:
        if compute_overall_status(record) != CredentialingStatus.REJECTED:
            raise ConflictError("Only rejected credentialing records can be reopened")

        reset = []
        for entry in record.phases:
            if entry.status == PhaseStatus.FAILED.value:
                entry.status = PhaseStatus.PENDING.value
                entry.started_at = None
                entry.completed_at = None
                reset.append(entry.phase)
        record.rejected_at = None
        record.rejection_reason = None
        audit_service.log_event(
            db=db,
            provider_id=provider_id,
            event_type=AuditEventType.RECORD_REOPENED,
            actor_id=actor_id,
            target_type="credentialing_record",
            target_id=record.id,
            details={"reset_phases": reset},
        )
    db.refresh(record)
    return record


# =============================================================================
# Automated outcomes
# =============================================================================


def apply_verification_outcome(
    db: Session,
    record: CredentialingRecord,
    verification_type: VerificationType,
    status: VerificationStatus,
    now: datetime,
) -> PhaseEntry | None:
    """
    Reflect an automated verification result on its backing phase.

    Caller holds the record lock. verified/requires_review move a
    pending or failed phase to in_progress; failed moves any non-completed
    phase to failed. Completed phases and terminal records are left alone.
    Returns the entry when it changed.
    """
    phase = phase_for_verification(verification_type)
    if phase is None:
        return None
    if compute_overall_status(record) in TERMINAL_CREDENTIALING_STATUSES:
        return None

    entry = _get_entry(record, phase)
    if entry.status == PhaseStatus.COMPLETED.value:
        return None

    if status == VerificationStatus.FAILED:
        if entry.status == PhaseStatus.FAILED.value:
            return None
        if entry.status == PhaseStatus.PENDING.value:
            # failed is only reachable from in_progress
            entry.status = PhaseStatus.IN_PROGRESS.value
            entry.started_at = now
            _phase_audit(
                db,
                record,
                entry,
                AuditEventType.PHASE_STARTED,
                audit_service.SYSTEM_ACTOR,
                {"verification_type": verification_type.value, "verification_status": status.value},
            )
        entry.status = PhaseStatus.FAILED.value
        event = AuditEventType.PHASE_FAILED
    elif status in (VerificationStatus.VERIFIED, VerificationStatus.REQUIRES_REVIEW):
        if entry.status not in (PhaseStatus.PENDING.value, PhaseStatus.FAILED.value):
            return None
        entry.status = PhaseStatus.IN_PROGRESS.value
        if entry.started_at is None:
            entry.started_at = now
        event = AuditEventType.PHASE_STARTED
    else:
        return None

    _phase_audit(
        db,
        record,
        entry,
        event,
        audit_service.SYSTEM_ACTOR,
        {"verification_type": verification_type.value, "verification_status": status.value},
    )
    return entry
