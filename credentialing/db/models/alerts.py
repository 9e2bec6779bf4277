"""Credentialing alerts."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from credentialing.db.base import Base
from credentialing.utils.dates import utc_now


class CredentialingAlert(Base):
    """
    A severity-classified notice for admins.

    `dedupe_key` identifies the underlying condition (a document, a
    verification type). At most one unresolved alert exists per
    (provider, alert_type, dedupe_key); resolved alerts are history.
    """

    __tablename__ = "credentialing_alerts"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False
    )
    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    __table_args__ = (
        Index(
            "ix_credentialing_alerts_condition",
            "provider_id",
            "alert_type",
            "dedupe_key",
            "resolved",
        ),
        Index("ix_credentialing_alerts_open", "resolved", "severity"),
    )
