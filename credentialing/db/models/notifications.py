"""Provider notification outbox and preferences."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from credentialing.db.base import Base
from credentialing.utils.dates import utc_now


class CredentialingNotification(Base):
    """
    Outbound email to a provider.

    Rows are queued inside the credentialing write that caused them and
    delivered afterwards, so a failed send never rolls back workflow state.
    """

    __tablename__ = "credentialing_notifications"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_message_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_credentialing_notifications_status", "status", "created_at"),
        Index("ix_credentialing_notifications_provider", "provider_id", "created_at"),
    )


class NotificationPreference(Base):
    """
    Per-provider email preferences.

    Missing row = all defaults ON.
    """

    __tablename__ = "credentialing_notification_preferences"

    provider_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True
    )
    email_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    document_upload_confirmation: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    document_verified: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    document_expiring: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    phase_completed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    credentialing_approved: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    alerts: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Only critical alerts are emailed
    critical_alerts_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
