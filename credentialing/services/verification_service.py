"""Automated verification: registry lookups, outcome mapping and upserts."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from credentialing.core.config import settings
from credentialing.core.exceptions import CredentialingError, RegistryLookupError, ValidationError
from credentialing.core.structured_logging import build_log_context
from credentialing.db.enums import (
    EXCLUSION_VERIFICATION_TYPES,
    AuditEventType,
    VerificationStatus,
    VerificationType,
)
from credentialing.db.models import Verification
from credentialing.services import alert_service, audit_service, phase_service, record_service
from credentialing.services.registry_lookup import (
    MatchStatus,
    ProviderIdentity,
    RegistryFailure,
    RegistryLookup,
    RegistryMatch,
    RegistryNotFound,
    RegistryResult,
)
from credentialing.utils.dates import utc_now
from credentialing.utils.normalization import normalize_identifier

logger = logging.getLogger(__name__)

IDENTITY_NUMBER_PATTERN = re.compile(r"^\d{10}$")

VERIFICATION_SOURCES = {
    VerificationType.IDENTITY_NUMBER: "CMS NPI Registry",
    VerificationType.CONTROLLED_SUBSTANCE_REGISTRATION: "DEA number format validation",
    VerificationType.EXCLUSION_REGISTRY_PRIMARY: "OIG LEIE",
    VerificationType.EXCLUSION_REGISTRY_SECONDARY: "SAM.gov Exclusions",
}


@dataclass
class VerificationOutcome:
    """Per-type line of a batch summary."""

    verification_type: VerificationType
    status: VerificationStatus | None
    notes: str | None = None
    skipped: bool = False
    error: str | None = None


# =============================================================================
# Outcome mapping
# =============================================================================


def map_registry_result(
    verification_type: VerificationType, result: RegistryResult
) -> VerificationStatus:
    """
    Map a registry variant to a verification status.

    Exclusion registries invert "not found": absence from the list is the
    clean result. A failed lookup always needs a human.
    """
    exclusion = verification_type in EXCLUSION_VERIFICATION_TYPES
    if isinstance(result, RegistryFailure):
        return VerificationStatus.REQUIRES_REVIEW
    if isinstance(result, RegistryNotFound):
        return VerificationStatus.VERIFIED if exclusion else VerificationStatus.FAILED
    if isinstance(result, RegistryMatch):
        if result.status == MatchStatus.ACTIVE:
            return VerificationStatus.VERIFIED
        return VerificationStatus.FAILED
    raise TypeError(f"Unknown registry result: {result!r}")


def _describe(verification_type: VerificationType, result: RegistryResult) -> str:
    if isinstance(result, (RegistryFailure, RegistryNotFound)):
        return result.reason
    if verification_type in EXCLUSION_VERIFICATION_TYPES:
        if result.status == MatchStatus.ACTIVE:
            return "Listed previously; reinstated"
        return "Provider matches an active exclusion record"
    return f"Registry status: {result.status.value}"


def _result_details(result: RegistryResult) -> dict:
    if isinstance(result, RegistryMatch):
        return {"match_status": result.status.value, **result.details}
    return {"result": "not_found" if isinstance(result, RegistryNotFound) else "failure"}


async def _lookup_with_timeout(
    lookup: RegistryLookup,
    verification_type: VerificationType,
    identity: ProviderIdentity,
    timeout: float,
) -> RegistryResult:
    try:
        return await asyncio.wait_for(lookup(verification_type, identity), timeout=timeout)
    except asyncio.TimeoutError:
        return RegistryFailure(f"Registry lookup timed out after {timeout:g}s")
    except RegistryLookupError as exc:
        return RegistryFailure(exc.message)


# =============================================================================
# Operations
# =============================================================================


def get_verification(
    db: Session, provider_id: UUID, verification_type: VerificationType
) -> Verification | None:
    return db.execute(
        select(Verification).where(
            Verification.provider_id == provider_id,
            Verification.verification_type == verification_type.value,
        )
    ).scalar_one_or_none()


def list_verifications(db: Session, provider_id: UUID) -> list[Verification]:
    """Current verification rows for a provider (one per type)."""
    return list(
        db.execute(
            select(Verification)
            .where(Verification.provider_id == provider_id)
            .order_by(Verification.verification_type)
        ).scalars()
    )


async def run_verification(
    db: Session,
    provider_id: UUID,
    verification_type: VerificationType,
    lookup: RegistryLookup,
    identity: ProviderIdentity | None = None,
    actor_id: str | None = None,
    now: datetime | None = None,
    timeout: float | None = None,
) -> Verification:
    """
    Run one registry check and record its outcome.

    The lookup runs with a bounded timeout and without the provider lock;
    only the upsert, alert and phase update happen under it. Registry
    problems never escape: they become requires_review plus a warning alert.
    Re-running a type replaces the previous row.
    """
    provider = record_service.get_provider(db, provider_id)
    identity = identity or ProviderIdentity.from_provider(provider)
    timeout = timeout if timeout is not None else settings.REGISTRY_LOOKUP_TIMEOUT_SECONDS

    result = await _lookup_with_timeout(lookup, verification_type, identity, timeout)
    status = map_registry_result(verification_type, result)
    notes = _describe(verification_type, result)
    now = now or utc_now()

    with record_service.record_write(db, provider_id, actor_id, now) as record:
        verification = get_verification(db, provider_id, verification_type)
        if verification is None:
            verification = Verification(
                provider_id=provider_id,
                verification_type=verification_type.value,
                created_at=now,
            )
            db.add(verification)
        verification.status = status.value
        verification.source = VERIFICATION_SOURCES[verification_type]
        verification.notes = notes
        verification.details = _result_details(result)
        verification.verified_at = now if status == VerificationStatus.VERIFIED else None
        verification.updated_at = now
        if verification_type in EXCLUSION_VERIFICATION_TYPES:
            verification.next_check_at = now + timedelta(days=settings.EXCLUSION_RECHECK_DAYS)
        db.flush()

        if (
            verification_type == VerificationType.IDENTITY_NUMBER
            and status == VerificationStatus.VERIFIED
            and identity.npi_number
        ):
            provider.npi_number = normalize_identifier(identity.npi_number)

        alert_service.raise_verification_alert(
            db, provider_id, verification_type, status, now, reason=notes
        )
        phase_service.apply_verification_outcome(db, record, verification_type, status, now)
        audit_service.log_event(
            db=db,
            provider_id=provider_id,
            event_type=AuditEventType.VERIFICATION_RUN,
            actor_id=actor_id,
            target_type="verification",
            target_id=verification.id,
            details={"verification_type": verification_type.value, "status": status.value},
        )

    log = logger.warning if status != VerificationStatus.VERIFIED else logger.info
    log(
        "Verification %s: %s",
        verification_type.value,
        status.value,
        extra=build_log_context(
            provider_id=str(provider_id), verification_type=verification_type.value
        ),
    )
    db.refresh(verification)
    return verification


def batch_verification_types(identity: ProviderIdentity) -> list[VerificationType]:
    """Checks a batch runs, in order. DEA only when a number is on file."""
    types = [VerificationType.IDENTITY_NUMBER]
    if identity.dea_number:
        types.append(VerificationType.CONTROLLED_SUBSTANCE_REGISTRATION)
    types.extend(
        [
            VerificationType.EXCLUSION_REGISTRY_PRIMARY,
            VerificationType.EXCLUSION_REGISTRY_SECONDARY,
        ]
    )
    return types


async def run_batch(
    db: Session,
    provider_id: UUID,
    lookup: RegistryLookup,
    actor_id: str | None = None,
    types: list[VerificationType] | None = None,
    now: datetime | None = None,
) -> list[VerificationOutcome]:
    """
    Run the automated checks sequentially; each is an independent upsert.

    The identity check is skipped (with a reason) when no identity number is
    on file. An error in one check is reported in the summary and does not
    stop the others.
    """
    provider = record_service.get_provider(db, provider_id)
    identity = ProviderIdentity.from_provider(provider)
    outcomes: list[VerificationOutcome] = []

    for verification_type in types or batch_verification_types(identity):
        if verification_type == VerificationType.IDENTITY_NUMBER and not identity.npi_number:
            outcomes.append(
                VerificationOutcome(
                    verification_type=verification_type,
                    status=None,
                    notes="No identity number on file",
                    skipped=True,
                )
            )
            continue
        try:
            verification = await run_verification(
                db,
                provider_id,
                verification_type,
                lookup,
                identity=identity,
                actor_id=actor_id,
                now=now,
            )
        except CredentialingError as exc:
            logger.exception(
                "Verification %s errored",
                verification_type.value,
                extra=build_log_context(provider_id=str(provider_id)),
            )
            outcomes.append(
                VerificationOutcome(
                    verification_type=verification_type, status=None, error=exc.message
                )
            )
            continue
        outcomes.append(
            VerificationOutcome(
                verification_type=verification_type,
                status=VerificationStatus(verification.status),
                notes=verification.notes,
            )
        )
    return outcomes


async def submit_identity_number(
    db: Session,
    provider_id: UUID,
    identity_number: str,
    lookup: RegistryLookup,
    now: datetime | None = None,
) -> Verification:
    """
    Provider submits an NPI: validate, record it and verify it.

    The number is cached on the provider profile only once verified.
    """
    npi = normalize_identifier(identity_number)
    if not IDENTITY_NUMBER_PATTERN.match(npi):
        raise ValidationError("Identity number must be exactly 10 digits")

    actor_id = str(provider_id)
    now = now or utc_now()
    with record_service.record_write(db, provider_id, actor_id, now) as record:
        record.submitted_identity_number = npi
        record_service.mark_submitted(record, now)
        audit_service.log_event(
            db=db,
            provider_id=provider_id,
            event_type=AuditEventType.IDENTITY_NUMBER_SUBMITTED,
            actor_id=actor_id,
            target_type="credentialing_record",
            target_id=record.id,
        )

    provider = record_service.get_provider(db, provider_id)
    identity = ProviderIdentity.from_provider(provider, npi_number=npi)
    return await run_verification(
        db,
        provider_id,
        VerificationType.IDENTITY_NUMBER,
        lookup,
        identity=identity,
        actor_id=actor_id,
    )
