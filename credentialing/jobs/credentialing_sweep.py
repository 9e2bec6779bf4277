"""Scheduled credentialing jobs: daily alert sweep and exclusion re-checks.

Both jobs open one session per provider so a failure for one provider is
rolled back and counted without touching the others.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from credentialing.core.config import settings
from credentialing.core.structured_logging import build_log_context
from credentialing.db.enums import CredentialingStatus, VerificationType
from credentialing.db.models import CredentialingRecord, Verification
from credentialing.db.session import SessionLocal
from credentialing.services import alert_service, verification_service
from credentialing.services.registry_lookup import RegistryLookup
from credentialing.utils.dates import utc_now

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]

RECHECK_TYPES = [
    VerificationType.EXCLUSION_REGISTRY_PRIMARY,
    VerificationType.EXCLUSION_REGISTRY_SECONDARY,
]


@dataclass
class SweepResult:
    providers_checked: int = 0
    alerts_created: int = 0
    alerts_escalated: int = 0
    errors: int = 0
    failed_provider_ids: list[str] = field(default_factory=list)


@dataclass
class RecheckResult:
    providers_checked: int = 0
    checks_run: int = 0
    errors: int = 0
    failed_provider_ids: list[str] = field(default_factory=list)


# =============================================================================
# Alert sweep
# =============================================================================


def sweep_provider_ids(db: Session) -> list[UUID]:
    """Providers whose alerts still matter: every record except rejected ones."""
    return list(
        db.execute(
            select(CredentialingRecord.provider_id)
            .where(CredentialingRecord.status != CredentialingStatus.REJECTED.value)
            .order_by(CredentialingRecord.created_at.asc())
        ).scalars()
    )


def _evaluate_one(
    session_factory: SessionFactory, provider_id: UUID, now: datetime
) -> alert_service.EvaluationResult:
    with session_factory() as db:
        return alert_service.evaluate_provider(db, provider_id, now=now)


def run_alert_sweep(
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
    max_workers: int | None = None,
) -> SweepResult:
    """
    Evaluate alerts for every active or approved provider.

    Approved providers are included because their documents keep expiring.
    """
    session_factory = session_factory or SessionLocal
    now = now or utc_now()
    max_workers = max_workers or settings.ALERT_SWEEP_MAX_WORKERS

    with session_factory() as db:
        provider_ids = sweep_provider_ids(db)

    result = SweepResult()
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(_evaluate_one, session_factory, provider_id, now): provider_id
            for provider_id in provider_ids
        }
        for future in as_completed(futures):
            provider_id = futures[future]
            result.providers_checked += 1
            try:
                evaluation = future.result()
            except Exception:
                logger.exception(
                    "Alert evaluation failed",
                    extra=build_log_context(provider_id=str(provider_id)),
                )
                result.errors += 1
                result.failed_provider_ids.append(str(provider_id))
                continue
            result.alerts_created += evaluation.created
            result.alerts_escalated += evaluation.escalated

    logger.info(
        "Alert sweep complete (providers=%s created=%s escalated=%s errors=%s)",
        result.providers_checked,
        result.alerts_created,
        result.alerts_escalated,
        result.errors,
    )
    return result


# =============================================================================
# Exclusion re-check
# =============================================================================


def due_exclusion_rechecks(db: Session, now: datetime) -> list[UUID]:
    """Providers with an exclusion check whose `next_check_at` has passed."""
    query = (
        select(Verification.provider_id)
        .join(CredentialingRecord, CredentialingRecord.provider_id == Verification.provider_id)
        .where(
            Verification.verification_type.in_([t.value for t in RECHECK_TYPES]),
            Verification.next_check_at.is_not(None),
            Verification.next_check_at <= now,
            CredentialingRecord.status != CredentialingStatus.REJECTED.value,
        )
        .distinct()
    )
    return list(db.execute(query).scalars())


async def recheck_exclusions(
    lookup: RegistryLookup,
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
) -> RecheckResult:
    """Re-run both exclusion checks for every provider that is due."""
    session_factory = session_factory or SessionLocal
    now = now or utc_now()

    with session_factory() as db:
        provider_ids = due_exclusion_rechecks(db, now)

    result = RecheckResult()
    for provider_id in provider_ids:
        result.providers_checked += 1
        try:
            with session_factory() as db:
                outcomes = await verification_service.run_batch(
                    db, provider_id, lookup, types=RECHECK_TYPES, now=now
                )
        except Exception:
            logger.exception(
                "Exclusion re-check failed",
                extra=build_log_context(provider_id=str(provider_id)),
            )
            result.errors += 1
            result.failed_provider_ids.append(str(provider_id))
            continue
        result.checks_run += sum(1 for o in outcomes if o.status is not None)
        failed = [o for o in outcomes if o.error]
        if failed:
            result.errors += len(failed)
            result.failed_provider_ids.append(str(provider_id))

    logger.info(
        "Exclusion re-check complete (providers=%s checks=%s errors=%s)",
        result.providers_checked,
        result.checks_run,
        result.errors,
    )
    return result
