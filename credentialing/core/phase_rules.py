"""Credentialing phase rules.

Pure functions over a record's phase entries. They never touch the
database, so the same rules back the API views, the state machine and the
alert sweep.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Mapping

from credentialing.db.enums import (
    PHASE_ORDER,
    PHASE_VERIFICATION_PREREQUISITES,
    CredentialingPhase,
    CredentialingStatus,
    PhaseStatus,
    VerificationStatus,
    VerificationType,
)
from credentialing.utils.dates import as_utc

if TYPE_CHECKING:
    from credentialing.db.models import CredentialingRecord

TOTAL_PHASES = len(PHASE_ORDER)
SECONDS_PER_DAY = 86400

_STARTED_STATUSES = {
    PhaseStatus.IN_PROGRESS.value,
    PhaseStatus.COMPLETED.value,
    PhaseStatus.FAILED.value,
}


def phase_statuses(record: "CredentialingRecord") -> dict[CredentialingPhase, PhaseStatus]:
    """Map of phase -> status; phases missing from the record read as pending."""
    statuses = {phase: PhaseStatus.PENDING for phase in PHASE_ORDER}
    for entry in record.phases:
        statuses[CredentialingPhase(entry.phase)] = PhaseStatus(entry.status)
    return statuses


def completed_phase_count(record: "CredentialingRecord") -> int:
    return sum(1 for entry in record.phases if entry.status == PhaseStatus.COMPLETED.value)


def progress_fraction(record: "CredentialingRecord") -> float:
    """Completed phases / 8. The raw fraction is the value of record."""
    return completed_phase_count(record) / TOTAL_PHASES


def progress_percentage(record: "CredentialingRecord") -> int:
    """Progress rounded to the nearest whole percent, for display."""
    return round(progress_fraction(record) * 100)


def compute_overall_status(record: "CredentialingRecord") -> CredentialingStatus:
    """
    Derive the overall status from phases and explicit admin decisions.

    A failed phase alone does not reject: rejection needs `rejected_at`,
    which only the admin reject action sets.
    """
    statuses = [entry.status for entry in record.phases]

    if len(statuses) == TOTAL_PHASES and all(
        status == PhaseStatus.COMPLETED.value for status in statuses
    ):
        return CredentialingStatus.APPROVED
    if record.rejected_at is not None and PhaseStatus.FAILED.value in statuses:
        return CredentialingStatus.REJECTED
    if any(status in _STARTED_STATUSES for status in statuses):
        return CredentialingStatus.IN_PROGRESS
    if record.submitted_at is not None:
        return CredentialingStatus.PENDING
    return CredentialingStatus.NOT_STARTED


def is_terminal(record: "CredentialingRecord") -> bool:
    return compute_overall_status(record) in (
        CredentialingStatus.APPROVED,
        CredentialingStatus.REJECTED,
    )


def days_in_process(record: "CredentialingRecord", now: datetime) -> int:
    """Whole days since the record was created, frozen once approved or rejected."""
    end = now
    status = compute_overall_status(record)
    if status == CredentialingStatus.APPROVED and record.completed_at is not None:
        end = record.completed_at
    elif status == CredentialingStatus.REJECTED and record.rejected_at is not None:
        end = record.rejected_at
    elapsed = as_utc(end) - as_utc(record.created_at)
    return max(0, int(elapsed.total_seconds() // SECONDS_PER_DAY))


def current_phase(record: "CredentialingRecord") -> CredentialingPhase | None:
    """First in-progress phase, else first non-completed phase, else None."""
    statuses = phase_statuses(record)
    for phase in PHASE_ORDER:
        if statuses[phase] == PhaseStatus.IN_PROGRESS:
            return phase
    for phase in PHASE_ORDER:
        if statuses[phase] != PhaseStatus.COMPLETED:
            return phase
    return None


def blocking_phases(
    statuses: Mapping[CredentialingPhase, PhaseStatus],
    phase: CredentialingPhase,
) -> list[CredentialingPhase]:
    """Phases strictly before `phase` in canonical order that are not completed."""
    index = PHASE_ORDER.index(phase)
    return [p for p in PHASE_ORDER[:index] if statuses[p] != PhaseStatus.COMPLETED]


def unverified_prerequisites(
    phase: CredentialingPhase,
    verification_statuses: Mapping[VerificationType, VerificationStatus],
) -> dict[VerificationType, VerificationStatus]:
    """Backing verifications of an automatable phase that are not `verified`."""
    required: Iterable[VerificationType] = PHASE_VERIFICATION_PREREQUISITES.get(phase, ())
    missing = {}
    for verification_type in required:
        status = verification_statuses.get(verification_type, VerificationStatus.NOT_STARTED)
        if status != VerificationStatus.VERIFIED:
            missing[verification_type] = status
    return missing


def phase_for_verification(verification_type: VerificationType) -> CredentialingPhase | None:
    """The automatable phase a verification type backs, if any."""
    for phase, types in PHASE_VERIFICATION_PREREQUISITES.items():
        if verification_type in types:
            return phase
    return None


def reverification_problems(
    phase: CredentialingPhase,
    verification_statuses: Mapping[VerificationType, VerificationStatus],
) -> dict[VerificationType, VerificationStatus]:
    """Backing verifications of `phase` whose latest run failed or needs review."""
    problems = {}
    for verification_type in PHASE_VERIFICATION_PREREQUISITES.get(phase, ()):
        status = verification_statuses.get(verification_type)
        if status in (VerificationStatus.FAILED, VerificationStatus.REQUIRES_REVIEW):
            problems[verification_type] = status
    return problems
