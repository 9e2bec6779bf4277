"""Credentialing record, phase timeline and notes."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from credentialing.db.base import Base
from credentialing.db.enums import CredentialingStatus, NoteCategory, PhaseStatus
from credentialing.utils.dates import utc_now

if TYPE_CHECKING:
    from credentialing.db.models import Provider


class CredentialingRecord(Base):
    """
    Root of a provider's credentialing workflow (one per provider).

    `status` is a cache of the derived overall status; it is recomputed by
    every write that touches phases, submission or rejection.
    `version` is the optimistic-lock counter used to serialize writers.
    """

    __tablename__ = "credentialing_records"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False, unique=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=CredentialingStatus.NOT_STARTED.value, nullable=False
    )

    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Last identity number the provider submitted, awaiting verification
    submitted_identity_number: Mapped[str | None] = mapped_column(String(10), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    provider: Mapped["Provider"] = relationship(back_populates="credentialing_record")
    phases: Mapped[list["PhaseEntry"]] = relationship(
        back_populates="record",
        order_by="PhaseEntry.position",
        cascade="all, delete-orphan",
    )
    notes: Mapped[list["CredentialingNote"]] = relationship(
        back_populates="record",
        order_by="CredentialingNote.created_at.desc()",
    )

    __table_args__ = (Index("ix_credentialing_records_status", "status"),)
    __mapper_args__ = {"version_id_col": version}


class PhaseEntry(Base):
    """One of the eight fixed phases of a credentialing record."""

    __tablename__ = "credentialing_phases"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    record_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("credentialing_records.id", ondelete="CASCADE"), nullable=False
    )
    phase: Mapped[str] = mapped_column(String(40), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=PhaseStatus.PENDING.value, nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    record: Mapped["CredentialingRecord"] = relationship(back_populates="phases")

    __table_args__ = (
        UniqueConstraint("record_id", "phase", name="uq_credentialing_phases_record_phase"),
    )


class CredentialingNote(Base):
    """
    Append-only annotation on a credentialing record.

    Notes are never edited or deleted; corrections are new notes.
    """

    __tablename__ = "credentialing_notes"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    record_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("credentialing_records.id", ondelete="RESTRICT"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)  # user id or "system"
    category: Mapped[str] = mapped_column(
        String(20), default=NoteCategory.GENERAL.value, nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    record: Mapped["CredentialingRecord"] = relationship(back_populates="notes")

    __table_args__ = (Index("ix_credentialing_notes_record", "record_id", "created_at"),)
