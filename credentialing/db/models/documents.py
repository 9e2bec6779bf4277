"""Credentialing document metadata."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from credentialing.db.base import Base
from credentialing.utils.dates import utc_now


class CredentialingDocument(Base):
    """
    An uploaded credentialing artifact.

    The row is the source of truth for whether a document exists; bytes live
    in the document store under `storage_key`. Verified documents are
    immutable and are superseded by re-uploads rather than deleted.
    """

    __tablename__ = "credentialing_documents"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False
    )
    document_type: Mapped[str] = mapped_column(String(40), nullable=False)

    # File metadata
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    checksum_sha256: Mapped[str] = mapped_column(String(64), nullable=False)

    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Review
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    uploaded_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_credentialing_documents_provider", "provider_id", "document_type"),
        Index("ix_credentialing_documents_expiration", "expiration_date"),
    )
