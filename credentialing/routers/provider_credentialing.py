"""Provider-facing credentialing endpoints: status, documents, identity number, email preferences."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from sqlalchemy.orm import Session

from credentialing.core.deps import (
    get_current_provider_id,
    get_db,
    get_registry_lookup,
    get_store,
)
from credentialing.db.enums import DocumentType
from credentialing.schemas import (
    AlertListResponse,
    AlertRead,
    DocumentRead,
    IdentityNumberSubmit,
    MyStatusResponse,
    NotificationPreferencesRead,
    NotificationPreferencesUpdate,
    VerificationRead,
)
from credentialing.services import (
    alert_service,
    credentialing_service,
    document_service,
    notification_service,
    verification_service,
)
from credentialing.services.document_storage import DocumentStore
from credentialing.services.registry_lookup import RegistryLookup
from credentialing.utils.dates import utc_now
from credentialing.utils.file_upload import read_upload

router = APIRouter(prefix="/provider/credentialing", tags=["provider-credentialing"])


@router.get("/status", response_model=MyStatusResponse)
def get_my_status(
    db: Session = Depends(get_db),
    provider_id: UUID = Depends(get_current_provider_id),
):
    """
    Current credentialing progress for the signed-in provider.

    The record is created on first visit.
    """
    return credentialing_service.get_my_status(db, provider_id)


# =============================================================================
# Documents
# =============================================================================


@router.get("/documents", response_model=list[DocumentRead])
def list_my_documents(
    document_type: DocumentType | None = None,
    db: Session = Depends(get_db),
    provider_id: UUID = Depends(get_current_provider_id),
):
    now = utc_now()
    return [
        credentialing_service.to_document_read(d, now)
        for d in document_service.list_documents(db, provider_id, document_type=document_type)
    ]


@router.post("/documents", response_model=DocumentRead, status_code=201)
async def upload_document(
    request: Request,
    file: Annotated[UploadFile, File()],
    document_type: Annotated[DocumentType, Form()],
    expiration_date: Annotated[date | None, Form()] = None,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
    provider_id: UUID = Depends(get_current_provider_id),
):
    """
    Upload a credentialing document (PDF, image or Word, up to 10 MB).

    The first upload marks the record as submitted.
    """
    content = await read_upload(request, file, document_service.MAX_FILE_SIZE_BYTES)
    document = document_service.upload_document(
        db,
        store,
        provider_id,
        content,
        filename=file.filename or "untitled",
        content_type=file.content_type,
        document_type=document_type,
        expiration_date=expiration_date,
    )
    return credentialing_service.to_document_read(document, utc_now())


@router.get("/documents/{document_id}/download")
def download_my_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
    provider_id: UUID = Depends(get_current_provider_id),
):
    document = document_service.get_provider_document(db, provider_id, document_id)
    content = document_service.fetch_document_bytes(store, document)
    safe_name = document.filename.replace('"', "")
    return Response(
        content=content,
        media_type=document.content_type,
        headers={"Content-Disposition": f'attachment; filename="{safe_name}"'},
    )


@router.delete("/documents/{document_id}", status_code=204)
def delete_my_document(
    document_id: UUID,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
    provider_id: UUID = Depends(get_current_provider_id),
):
    """Delete an unverified document. Verified documents return 409."""
    document_service.delete_document(
        db, store, document_id, provider_id=provider_id, actor_id=str(provider_id)
    )
    return Response(status_code=204)


# =============================================================================
# Identity number and alerts
# =============================================================================


@router.post("/identity-number", response_model=VerificationRead)
async def submit_identity_number(
    data: IdentityNumberSubmit,
    db: Session = Depends(get_db),
    provider_id: UUID = Depends(get_current_provider_id),
    lookup: RegistryLookup = Depends(get_registry_lookup),
):
    """Submit an NPI and verify it against the national registry."""
    return await verification_service.submit_identity_number(
        db, provider_id, data.identity_number, lookup
    )


@router.get("/alerts", response_model=AlertListResponse)
def list_my_alerts(
    resolved: bool | None = False,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    provider_id: UUID = Depends(get_current_provider_id),
):
    alerts = alert_service.list_alerts(db, provider_id=provider_id, resolved=resolved, limit=limit)
    return AlertListResponse(
        items=[AlertRead.model_validate(a) for a in alerts],
        total=alert_service.count_alerts(db, provider_id=provider_id, resolved=resolved),
    )


# =============================================================================
# Email preferences
# =============================================================================


@router.get("/notification-preferences", response_model=NotificationPreferencesRead)
def get_notification_preferences(
    db: Session = Depends(get_db),
    provider_id: UUID = Depends(get_current_provider_id),
):
    return notification_service.get_preferences(db, provider_id)


@router.patch("/notification-preferences", response_model=NotificationPreferencesRead)
def update_notification_preferences(
    data: NotificationPreferencesUpdate,
    db: Session = Depends(get_db),
    provider_id: UUID = Depends(get_current_provider_id),
):
    """Change which credentialing emails the provider receives."""
    return notification_service.update_preferences(
        db, provider_id, data.model_dump(exclude_none=True)
    )
