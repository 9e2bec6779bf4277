"""Provider profile model (owned by the directory; read by credentialing)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from credentialing.db.base import Base
from credentialing.utils.dates import utc_now

if TYPE_CHECKING:
    from credentialing.db.models import CredentialingRecord


class Provider(Base):
    """
    A therapist listed in the directory.

    Credentialing never edits profile fields; the only write it performs is
    caching an identity number (NPI) once the registry has verified it.
    """

    __tablename__ = "providers"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    license_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    license_state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    npi_number: Mapped[str | None] = mapped_column(String(10), nullable=True)
    dea_number: Mapped[str | None] = mapped_column(String(9), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    credentialing_record: Mapped["CredentialingRecord | None"] = relationship(
        back_populates="provider", uselist=False
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
