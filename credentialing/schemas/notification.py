"""Pydantic schemas for provider email preferences."""

from pydantic import BaseModel


class NotificationPreferencesRead(BaseModel):
    """A provider's email preferences (defaults when never changed)."""

    email_enabled: bool
    document_upload_confirmation: bool
    document_verified: bool
    document_expiring: bool
    phase_completed: bool
    credentialing_approved: bool
    alerts: bool
    critical_alerts_only: bool


class NotificationPreferencesUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""

    email_enabled: bool | None = None
    document_upload_confirmation: bool | None = None
    document_verified: bool | None = None
    document_expiring: bool | None = None
    phase_completed: bool | None = None
    credentialing_approved: bool | None = None
    alerts: bool | None = None
    critical_alerts_only: bool | None = None
