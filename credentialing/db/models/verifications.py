"""Automated verification outcomes."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from credentialing.db.base import Base
from credentialing.db.enums import VerificationStatus
from credentialing.utils.dates import utc_now


class Verification(Base):
    """
    Current outcome of one registry check for one provider.

    Exactly one row per (provider, verification_type); re-running a check
    overwrites the row.
    """

    __tablename__ = "credentialing_verifications"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False
    )
    verification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=VerificationStatus.NOT_STARTED.value, nullable=False
    )
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    next_check_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "provider_id",
            "verification_type",
            name="uq_credentialing_verifications_provider_type",
        ),
    )
