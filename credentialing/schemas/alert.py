"""Pydantic schemas for credentialing alerts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class AlertRead(BaseModel):
    id: UUID
    provider_id: UUID
    alert_type: str
    severity: str
    message: str
    resolved: bool
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AlertListResponse(BaseModel):
    items: list[AlertRead]
    total: int


class EvaluateAlertsResponse(BaseModel):
    created: int
    escalated: int
