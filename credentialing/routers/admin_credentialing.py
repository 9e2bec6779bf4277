"""Admin credentialing endpoints: review queue, phases, documents, alerts, notes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from credentialing.core.deps import get_admin_actor, get_db, get_registry_lookup, get_store
from credentialing.db.enums import AlertSeverity, AlertType, CredentialingPhase
from credentialing.schemas import (
    AlertListResponse,
    AlertRead,
    AuditEventRead,
    AuditTrailResponse,
    CredentialingRecordRead,
    DocumentRead,
    DocumentVerifyRequest,
    EvaluateAlertsResponse,
    NoteCreate,
    NoteRead,
    PendingProviderListResponse,
    PhaseAdvanceRequest,
    PhaseCompleteRequest,
    ProviderDetailResponse,
    RejectRequest,
    RunVerificationsResponse,
    VerificationOutcomeRead,
)
from credentialing.services import (
    alert_service,
    audit_service,
    credentialing_service,
    document_service,
    note_service,
    phase_service,
    record_service,
    verification_service,
)
from credentialing.services.document_storage import DocumentStore
from credentialing.services.registry_lookup import RegistryLookup
from credentialing.utils.dates import utc_now

router = APIRouter(prefix="/admin/credentialing", tags=["admin-credentialing"])


def _download_response(content: bytes, content_type: str, filename: str) -> Response:
    safe_name = filename.replace('"', "")
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{safe_name}"'},
    )


# =============================================================================
# Review queue and detail
# =============================================================================


@router.get("/providers", response_model=PendingProviderListResponse)
def list_pending_providers(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _: str = Depends(get_admin_actor),
):
    """Providers with a submitted or in-progress record, longest waiting first."""
    return credentialing_service.list_pending_providers(db, limit=limit, offset=offset)


@router.get("/providers/{provider_id}", response_model=ProviderDetailResponse)
def get_provider_detail(
    provider_id: UUID,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    return credentialing_service.get_provider_detail(db, provider_id, actor_id=actor_id)


@router.get("/providers/{provider_id}/audit", response_model=AuditTrailResponse)
def get_audit_trail(
    provider_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    _: str = Depends(get_admin_actor),
):
    """Hash-chained audit events, newest first, with a chain integrity check."""
    record_service.get_provider(db, provider_id)
    return AuditTrailResponse(
        items=[
            AuditEventRead.model_validate(e)
            for e in audit_service.list_events(db, provider_id, limit=limit)
        ],
        total=audit_service.count_events(db, provider_id),
        chain_valid=audit_service.verify_chain(db, provider_id),
    )


# =============================================================================
# Verifications
# =============================================================================


@router.post(
    "/providers/{provider_id}/verifications/run", response_model=RunVerificationsResponse
)
async def run_automated_verifications(
    provider_id: UUID,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
    lookup: RegistryLookup = Depends(get_registry_lookup),
):
    """Run NPI, DEA (when on file), OIG and SAM checks."""
    outcomes = await verification_service.run_batch(db, provider_id, lookup, actor_id=actor_id)
    return RunVerificationsResponse(
        results=[
            VerificationOutcomeRead(
                verification_type=o.verification_type.value,
                status=o.status.value if o.status else None,
                notes=o.notes,
                skipped=o.skipped,
                error=o.error,
            )
            for o in outcomes
        ]
    )


# =============================================================================
# Phases
# =============================================================================


@router.post("/providers/{provider_id}/phases/{phase}", response_model=CredentialingRecordRead)
def advance_phase(
    provider_id: UUID,
    phase: CredentialingPhase,
    data: PhaseAdvanceRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    """Move a phase to the requested status (in_progress or completed)."""
    record = phase_service.advance_phase(
        db, provider_id, phase, data.target, actor_id=actor_id, notes=data.notes
    )
    return credentialing_service.to_record_read(record, utc_now())


@router.post(
    "/providers/{provider_id}/phases/{phase}/start", response_model=CredentialingRecordRead
)
def start_phase(
    provider_id: UUID,
    phase: CredentialingPhase,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    record = phase_service.start_phase(db, provider_id, phase, actor_id=actor_id)
    return credentialing_service.to_record_read(record, utc_now())


@router.post(
    "/providers/{provider_id}/phases/{phase}/complete", response_model=CredentialingRecordRead
)
def complete_phase(
    provider_id: UUID,
    phase: CredentialingPhase,
    data: PhaseCompleteRequest | None = None,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    """
    Complete a phase.

    409 when an earlier phase is open or an automatable phase's
    verification is not verified.
    """
    record = phase_service.complete_phase(
        db, provider_id, phase, actor_id=actor_id, notes=data.notes if data else None
    )
    return credentialing_service.to_record_read(record, utc_now())


@router.post("/providers/{provider_id}/reject", response_model=CredentialingRecordRead)
def reject_record(
    provider_id: UUID,
    data: RejectRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    record = phase_service.reject_record(
        db, provider_id, data.phase, data.reason, actor_id=actor_id
    )
    return credentialing_service.to_record_read(record, utc_now())


@router.post("/providers/{provider_id}/reopen", response_model=CredentialingRecordRead)
def reopen_record(
    provider_id: UUID,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    record = phase_service.reopen_record(db, provider_id, actor_id=actor_id)
    return credentialing_service.to_record_read(record, utc_now())


# =============================================================================
# Documents
# =============================================================================


@router.get("/providers/{provider_id}/documents", response_model=list[DocumentRead])
def list_provider_documents(
    provider_id: UUID,
    db: Session = Depends(get_db),
    _: str = Depends(get_admin_actor),
):
    record_service.get_provider(db, provider_id)
    now = utc_now()
    return [
        credentialing_service.to_document_read(d, now)
        for d in document_service.list_documents(db, provider_id)
    ]


@router.post("/documents/{document_id}/verify", response_model=DocumentRead)
def verify_document(
    document_id: UUID,
    data: DocumentVerifyRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    """Set or clear the verified flag. Alerts are re-evaluated; phases are not advanced."""
    document = document_service.verify_document(
        db, document_id, data.verified, notes=data.notes, actor_id=actor_id
    )
    return credentialing_service.to_document_read(document, utc_now())


@router.get("/documents/{document_id}/download")
def download_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
    _: str = Depends(get_admin_actor),
):
    document = document_service.get_document(db, document_id)
    content = document_service.fetch_document_bytes(store, document)
    return _download_response(content, document.content_type, document.filename)


# =============================================================================
# Notes
# =============================================================================


@router.post("/records/{record_id}/notes", response_model=NoteRead, status_code=201)
def add_note(
    record_id: UUID,
    data: NoteCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    return note_service.add_note(
        db,
        record_id,
        author_id=actor_id,
        body=data.body,
        category=data.category,
        is_internal=data.is_internal,
    )


@router.get("/records/{record_id}/notes", response_model=list[NoteRead])
def list_notes(
    record_id: UUID,
    db: Session = Depends(get_db),
    _: str = Depends(get_admin_actor),
):
    record_service.get_record_by_id(db, record_id)
    return note_service.list_notes(db, record_id)


# =============================================================================
# Alerts
# =============================================================================


@router.post(
    "/providers/{provider_id}/alerts/evaluate", response_model=EvaluateAlertsResponse
)
def evaluate_alerts(
    provider_id: UUID,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    result = alert_service.evaluate_provider(db, provider_id, actor_id=actor_id)
    return EvaluateAlertsResponse(created=result.created, escalated=result.escalated)


@router.get("/alerts", response_model=AlertListResponse)
def list_alerts(
    provider_id: UUID | None = None,
    severity: AlertSeverity | None = None,
    resolved: bool | None = None,
    alert_type: AlertType | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _: str = Depends(get_admin_actor),
):
    alerts = alert_service.list_alerts(
        db,
        provider_id=provider_id,
        severity=severity,
        resolved=resolved,
        alert_type=alert_type,
        limit=limit,
        offset=offset,
    )
    total = alert_service.count_alerts(
        db, provider_id=provider_id, severity=severity, resolved=resolved, alert_type=alert_type
    )
    return AlertListResponse(items=[AlertRead.model_validate(a) for a in alerts], total=total)


@router.post("/alerts/{alert_id}/resolve", response_model=AlertRead)
def resolve_alert(
    alert_id: UUID,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_admin_actor),
):
    return alert_service.resolve_alert(db, alert_id, actor_id=actor_id)
