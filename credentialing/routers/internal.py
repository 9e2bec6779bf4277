"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from external cron (daily alert sweep, monthly exclusion re-check, OIG refresh,
frequent notification delivery).
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from credentialing.core.deps import get_db, get_registry_lookup, verify_internal_secret
from credentialing.jobs import credentialing_sweep
from credentialing.services import notification_service, oig_import_service
from credentialing.services.registry_lookup import RegistryLookup

router = APIRouter(
    prefix="/internal/scheduled",
    tags=["internal"],
    dependencies=[Depends(verify_internal_secret)],
)


class AlertSweepResponse(BaseModel):
    providers_checked: int
    alerts_created: int
    alerts_escalated: int
    errors: int
    notifications_sent: int = 0
    notifications_failed: int = 0


class ExclusionRecheckResponse(BaseModel):
    providers_checked: int
    checks_run: int
    errors: int


class OIGRefreshResponse(BaseModel):
    imported: int
    skipped: int


class NotificationDeliveryResponse(BaseModel):
    sent: int
    failed: int
    skipped: int


@router.post("/alert-sweep", response_model=AlertSweepResponse)
async def alert_sweep(db: Session = Depends(get_db)):
    """
    Daily sweep: re-evaluate expiration and verification alerts.

    Covers in-progress and approved providers; rejected records are skipped.
    Emails queued by new or escalated alerts are sent afterwards.
    """
    result = await run_in_threadpool(credentialing_sweep.run_alert_sweep)
    delivery = await notification_service.deliver_pending(db)
    return AlertSweepResponse(
        providers_checked=result.providers_checked,
        alerts_created=result.alerts_created,
        alerts_escalated=result.alerts_escalated,
        errors=result.errors,
        notifications_sent=delivery.sent,
        notifications_failed=delivery.failed,
    )


@router.post("/exclusion-recheck", response_model=ExclusionRecheckResponse)
async def exclusion_recheck(lookup: RegistryLookup = Depends(get_registry_lookup)):
    """Re-run OIG and SAM checks whose monthly re-check date has passed."""
    result = await credentialing_sweep.recheck_exclusions(lookup)
    return ExclusionRecheckResponse(
        providers_checked=result.providers_checked,
        checks_run=result.checks_run,
        errors=result.errors,
    )


@router.post("/oig-refresh", response_model=OIGRefreshResponse)
async def oig_refresh(db: Session = Depends(get_db)):
    """Download the current OIG LEIE list and replace the local copy."""
    result = await oig_import_service.refresh_oig_list(db)
    return OIGRefreshResponse(imported=result.imported, skipped=result.skipped)


@router.post("/notifications", response_model=NotificationDeliveryResponse)
async def send_notifications(db: Session = Depends(get_db)):
    """Send queued provider emails."""
    result = await notification_service.deliver_pending(db)
    return NotificationDeliveryResponse(sent=result.sent, failed=result.failed, skipped=result.skipped)
