"""Pydantic schemas for credentialing notes."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from credentialing.db.enums import NoteCategory


class NoteCreate(BaseModel):
    """Request to add a note."""

    body: str = Field(..., min_length=1, max_length=10000)
    category: NoteCategory = NoteCategory.GENERAL
    is_internal: bool = True


class NoteRead(BaseModel):
    """Note response."""

    id: UUID
    record_id: UUID
    author_id: str
    category: str
    body: str
    is_internal: bool
    created_at: datetime

    model_config = {"from_attributes": True}
