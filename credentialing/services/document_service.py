"""Credentialing document lifecycle: upload, verify, delete, expiration."""

from __future__ import annotations

import hashlib
import logging
import os
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from credentialing.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from credentialing.core.structured_logging import build_log_context
from credentialing.db.enums import (
    EXPIRATION_BEARING_TYPES,
    AuditEventType,
    DocumentType,
    ExpirationStatus,
)
from credentialing.db.models import CredentialingDocument
from credentialing.services import audit_service, notification_service, record_service
from credentialing.services.document_storage import DocumentStore
from credentialing.utils.dates import start_of_day_utc, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MiB

SECONDS_PER_DAY = 86400
CRITICAL_DAYS = 7
WARNING_DAYS = 30
NOTICE_DAYS = 60


# =============================================================================
# Expiration
# =============================================================================


def days_until_expiration(expiration_date: date, now: datetime) -> int:
    """floor((expiration - now) / 1 day), expiration taken as midnight UTC."""
    delta = start_of_day_utc(expiration_date) - now
    return int(delta.total_seconds() // SECONDS_PER_DAY)


def compute_expiration_status(expiration_date: date | None, now: datetime) -> ExpirationStatus:
    """
    Classify a document's expiration relative to `now`.

    The alert engine uses the same function, so thresholds are identical
    everywhere: expired < 0 <= critical <= 7 < warning <= 30 < notice <= 60.
    """
    if expiration_date is None:
        return ExpirationStatus.NONE
    days_remaining = days_until_expiration(expiration_date, now)
    if days_remaining < 0:
        return ExpirationStatus.EXPIRED
    if days_remaining <= CRITICAL_DAYS:
        return ExpirationStatus.CRITICAL
    if days_remaining <= WARNING_DAYS:
        return ExpirationStatus.WARNING
    if days_remaining <= NOTICE_DAYS:
        return ExpirationStatus.NOTICE
    return ExpirationStatus.NONE


# =============================================================================
# Validation
# =============================================================================


def _parse_document_type(document_type: DocumentType | str) -> DocumentType:
    try:
        return DocumentType(document_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown document type: {document_type}") from exc


def _clean_filename(filename: str | None) -> str:
    name = os.path.basename((filename or "").replace("\\", "/")).strip()
    if not name:
        raise ValidationError("Filename is required")
    return name[:255]


def validate_upload(
    document_type: DocumentType,
    content_type: str | None,
    file_size: int,
    expiration_date: date | None,
    now: datetime,
) -> None:
    """Raise ValidationError when an upload breaks type, size or expiration rules."""
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if mime not in ALLOWED_MIME_TYPES:
        raise ValidationError(
            f"File type '{mime or 'unknown'}' not allowed; upload PDF, JPEG, PNG, GIF, DOC or DOCX"
        )
    if file_size <= 0:
        raise ValidationError("File is empty")
    if file_size > MAX_FILE_SIZE_BYTES:
        raise ValidationError(f"File exceeds {MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB limit")

    if expiration_date is None:
        if document_type in EXPIRATION_BEARING_TYPES:
            raise ValidationError(f"Expiration date is required for {document_type.value}")
        return
    if expiration_date <= now.date():
        raise ValidationError("Expiration date must be in the future")


# =============================================================================
# Operations
# =============================================================================


def upload_document(
    db: Session,
    store: DocumentStore,
    provider_id: UUID,
    data: bytes,
    filename: str,
    content_type: str | None,
    document_type: DocumentType | str,
    expiration_date: date | None = None,
    now: datetime | None = None,
) -> CredentialingDocument:
    """
    Validate, store and record a provider document.

    Bytes are written to the store before the provider lock is taken; the
    row is only persisted once the store confirmed. If persisting fails the
    stored bytes are deleted best-effort, so no partial document remains.
    """
    now = now or utc_now()
    doc_type = _parse_document_type(document_type)
    clean_name = _clean_filename(filename)
    validate_upload(doc_type, content_type, len(data), expiration_date, now)
    record_service.get_provider(db, provider_id)

    mime = (content_type or "").split(";", 1)[0].strip().lower()
    checksum = hashlib.sha256(data).hexdigest()
    storage_key = store.store(
        data,
        {
            "provider_id": str(provider_id),
            "filename": clean_name,
            "content_type": mime,
            "document_type": doc_type.value,
        },
    )

    actor_id = str(provider_id)
    try:
        with record_service.record_write(db, provider_id, actor_id, now) as record:
            document = CredentialingDocument(
                provider_id=provider_id,
                document_type=doc_type.value,
                filename=clean_name,
                storage_key=storage_key,
                content_type=mime,
                file_size=len(data),
                checksum_sha256=checksum,
                expiration_date=expiration_date,
                uploaded_at=now,
            )
            db.add(document)
            db.flush()
            record_service.mark_submitted(record, now)
            notification_service.notify_document_uploaded(db, document, now)
            audit_service.log_event(
                db=db,
                provider_id=provider_id,
                event_type=AuditEventType.DOCUMENT_UPLOADED,
                actor_id=actor_id,
                target_type="credentialing_document",
                target_id=document.id,
                details={"document_type": doc_type.value, "file_size": len(data)},
            )
    except Exception:
        _discard_bytes(store, storage_key, provider_id)
        raise

    logger.info(
        "Credentialing document uploaded",
        extra=build_log_context(provider_id=str(provider_id), document_id=str(document.id)),
    )
    db.refresh(document)
    return document


def _discard_bytes(store: DocumentStore, storage_key: str, provider_id: UUID) -> None:
    try:
        store.delete(storage_key)
    except StorageError:
        logger.warning(
            "Failed to delete stored document bytes",
            exc_info=True,
            extra=build_log_context(provider_id=str(provider_id)),
        )


def get_document(db: Session, document_id: UUID) -> CredentialingDocument:
    document = db.get(CredentialingDocument, document_id)
    if not document:
        raise NotFoundError(f"Document {document_id} not found")
    return document


def get_provider_document(
    db: Session, provider_id: UUID, document_id: UUID
) -> CredentialingDocument:
    """Get a document owned by the provider; other providers' documents read as missing."""
    document = db.get(CredentialingDocument, document_id)
    if not document or document.provider_id != provider_id:
        raise NotFoundError(f"Document {document_id} not found")
    return document


def list_documents(
    db: Session,
    provider_id: UUID,
    document_type: DocumentType | None = None,
) -> list[CredentialingDocument]:
    """A provider's documents, newest first."""
    query = select(CredentialingDocument).where(CredentialingDocument.provider_id == provider_id)
    if document_type:
        query = query.where(CredentialingDocument.document_type == document_type.value)
    query = query.order_by(
        CredentialingDocument.uploaded_at.desc(), CredentialingDocument.id.desc()
    )
    return list(db.execute(query).scalars())


def fetch_document_bytes(store: DocumentStore, document: CredentialingDocument) -> bytes:
    return store.fetch(document.storage_key)


def verify_document(
    db: Session,
    document_id: UUID,
    verified: bool,
    notes: str | None = None,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> CredentialingDocument:
    """
    Set or clear a document's verified flag.

    Re-evaluates the provider's alerts in the same unit of work. Phases are
    never advanced here; the admin does that explicitly.
    """
    from credentialing.services import alert_service

    now = now or utc_now()
    document = get_document(db, document_id)
    provider_id = document.provider_id

    with record_service.record_write(db, provider_id, actor_id, now):
        db.refresh(document)
        document.verified = verified
        document.verification_notes = notes
        if verified:
            document.verified_by = actor_id
            document.verified_at = now
        else:
            document.verified_by = None
            document.verified_at = None
        audit_service.log_event(
            db=db,
            provider_id=provider_id,
            event_type=(
                AuditEventType.DOCUMENT_VERIFIED if verified else AuditEventType.DOCUMENT_UNVERIFIED
            ),
            actor_id=actor_id,
            target_type="credentialing_document",
            target_id=document.id,
        )
        if verified:
            notification_service.notify_document_verified(db, document, now)
        alert_service.evaluate_alerts(db, provider_id, now)

    db.refresh(document)
    return document


def delete_document(
    db: Session,
    store: DocumentStore,
    document_id: UUID,
    provider_id: UUID | None = None,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> None:
    """
    Delete an unverified document.

    When `provider_id` is given the document must belong to that provider.
    The row is the source of truth; byte deletion afterwards is best-effort.

    Raises:
        ConflictError: the document is verified
        NotFoundError: unknown document (or not owned by the provider)
    """
    now = now or utc_now()
    if provider_id is not None:
        document = get_provider_document(db, provider_id, document_id)
    else:
        document = get_document(db, document_id)
    owner_id = document.provider_id
    actor_id = actor_id or str(owner_id)

    with record_service.record_write(db, owner_id, actor_id, now):
        db.refresh(document)
        if document.verified:
            raise ConflictError("Verified documents cannot be deleted")
        storage_key = document.storage_key
        audit_service.log_event(
            db=db,
            provider_id=owner_id,
            event_type=AuditEventType.DOCUMENT_DELETED,
            actor_id=actor_id,
            target_type="credentialing_document",
            target_id=document.id,
            details={"document_type": document.document_type},
        )
        db.delete(document)

    _discard_bytes(store, storage_key, owner_id)
    logger.info(
        "Credentialing document deleted",
        extra=build_log_context(provider_id=str(owner_id), document_id=str(document_id)),
    )
