"""Read-side views over a provider's credentialing state."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from credentialing.core.phase_rules import (
    current_phase,
    days_in_process,
    progress_fraction,
    progress_percentage,
)
from credentialing.db.enums import (
    REQUIRED_DOCUMENT_TYPES,
    AlertSeverity,
    CredentialingStatus,
)
from credentialing.db.models import CredentialingAlert, CredentialingDocument, CredentialingRecord
from credentialing.schemas import (
    AlertRead,
    CredentialingRecordRead,
    DocumentRead,
    MyStatusResponse,
    NoteRead,
    PendingProviderItem,
    PendingProviderListResponse,
    PhaseRead,
    ProviderDetailResponse,
    ProviderSummary,
    RequiredDocumentStatus,
    VerificationRead,
)
from credentialing.services import (
    alert_service,
    document_service,
    note_service,
    record_service,
    verification_service,
)
from credentialing.utils.dates import utc_now


def to_record_read(record: CredentialingRecord, now: datetime) -> CredentialingRecordRead:
    phase = current_phase(record)
    return CredentialingRecordRead(
        id=record.id,
        provider_id=record.provider_id,
        status=record.status,
        progress=progress_fraction(record),
        progress_percentage=progress_percentage(record),
        days_in_process=days_in_process(record, now),
        current_phase=phase.value if phase else None,
        submitted_at=record.submitted_at,
        completed_at=record.completed_at,
        rejected_at=record.rejected_at,
        rejection_reason=record.rejection_reason,
        created_at=record.created_at,
        updated_at=record.updated_at,
        phases=[PhaseRead.model_validate(entry) for entry in record.phases],
    )


def to_document_read(document: CredentialingDocument, now: datetime) -> DocumentRead:
    read = DocumentRead.model_validate(document)
    read.expiration_status = document_service.compute_expiration_status(
        document.expiration_date, now
    ).value
    if document.expiration_date:
        read.days_until_expiration = document_service.days_until_expiration(
            document.expiration_date, now
        )
    return read


def _required_documents(
    documents: list[CredentialingDocument], now: datetime
) -> list[RequiredDocumentStatus]:
    checklist = []
    for document_type in REQUIRED_DOCUMENT_TYPES:
        # Newest first, so the first match is the current upload
        of_type = [d for d in documents if d.document_type == document_type.value]
        latest = of_type[0] if of_type else None
        checklist.append(
            RequiredDocumentStatus(
                document_type=document_type.value,
                uploaded=latest is not None,
                verified=any(d.verified for d in of_type),
                expiration_status=(
                    document_service.compute_expiration_status(latest.expiration_date, now).value
                    if latest
                    else "none"
                ),
            )
        )
    return checklist


def get_provider_detail(
    db: Session,
    provider_id: UUID,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> ProviderDetailResponse:
    """Phases, documents, verifications, alerts and notes for admin review."""
    now = now or utc_now()
    provider = record_service.get_provider(db, provider_id)
    record = record_service.get_or_create_record(db, provider_id, actor_id, now)
    db.commit()

    documents = document_service.list_documents(db, provider_id)
    return ProviderDetailResponse(
        provider=ProviderSummary.model_validate(provider),
        record=to_record_read(record, now),
        documents=[to_document_read(d, now) for d in documents],
        verifications=[
            VerificationRead.model_validate(v)
            for v in verification_service.list_verifications(db, provider_id)
        ],
        alerts=[
            AlertRead.model_validate(a)
            for a in alert_service.list_alerts(db, provider_id=provider_id, limit=200)
        ],
        notes=[NoteRead.model_validate(n) for n in note_service.list_notes(db, record.id)],
    )


def get_my_status(
    db: Session, provider_id: UUID, now: datetime | None = None
) -> MyStatusResponse:
    """Provider-facing progress view. Creates the record on first visit."""
    now = now or utc_now()
    record = record_service.get_or_create_record(db, provider_id, str(provider_id), now)
    db.commit()

    documents = document_service.list_documents(db, provider_id)
    return MyStatusResponse(
        record=to_record_read(record, now),
        required_documents=_required_documents(documents, now),
        verifications=[
            VerificationRead.model_validate(v)
            for v in verification_service.list_verifications(db, provider_id)
        ],
        unresolved_alert_count=alert_service.count_alerts(
            db, provider_id=provider_id, resolved=False
        ),
        notes=[
            NoteRead.model_validate(n)
            for n in note_service.list_notes(db, record.id, include_internal=False)
        ],
    )


def _counts_by_provider(db: Session, query) -> dict[UUID, int]:
    return {provider_id: count for provider_id, count in db.execute(query).all()}


def list_pending_providers(
    db: Session,
    limit: int = 50,
    offset: int = 0,
    now: datetime | None = None,
) -> PendingProviderListResponse:
    """Providers whose credentialing awaits admin work, longest waiting first."""
    now = now or utc_now()
    records = record_service.list_pending_records(db, limit=limit, offset=offset)
    total = db.execute(
        select(func.count())
        .select_from(CredentialingRecord)
        .where(
            CredentialingRecord.status.in_(
                [CredentialingStatus.PENDING.value, CredentialingStatus.IN_PROGRESS.value]
            )
        )
    ).scalar_one()

    provider_ids = [record.provider_id for record in records]
    document_counts = _counts_by_provider(
        db,
        select(CredentialingDocument.provider_id, func.count())
        .where(CredentialingDocument.provider_id.in_(provider_ids))
        .group_by(CredentialingDocument.provider_id),
    )
    open_alerts = select(CredentialingAlert.provider_id, func.count()).where(
        CredentialingAlert.provider_id.in_(provider_ids),
        CredentialingAlert.resolved.is_(False),
    )
    alert_counts = _counts_by_provider(db, open_alerts.group_by(CredentialingAlert.provider_id))
    critical_counts = _counts_by_provider(
        db,
        open_alerts.where(
            CredentialingAlert.severity == AlertSeverity.CRITICAL.value
        ).group_by(CredentialingAlert.provider_id),
    )

    items = []
    for record in records:
        phase = current_phase(record)
        items.append(
            PendingProviderItem(
                provider=ProviderSummary.model_validate(record.provider),
                record_id=record.id,
                status=record.status,
                progress_percentage=progress_percentage(record),
                days_in_process=days_in_process(record, now),
                current_phase=phase.value if phase else None,
                document_count=document_counts.get(record.provider_id, 0),
                unresolved_alert_count=alert_counts.get(record.provider_id, 0),
                critical_alert_count=critical_counts.get(record.provider_id, 0),
            )
        )
    return PendingProviderListResponse(items=items, total=total)
