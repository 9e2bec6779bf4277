"""Local copy of the OIG List of Excluded Individuals/Entities (LEIE)."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from credentialing.db.base import Base


class OIGExclusion(Base):
    """One LEIE row. The table is replaced wholesale on each monthly refresh."""

    __tablename__ = "oig_exclusions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    specialty: Mapped[str | None] = mapped_column(String(100), nullable=True)
    npi: Mapped[str | None] = mapped_column(String(10), nullable=True)
    state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    exclusion_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    exclusion_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reinstatement_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        Index("ix_oig_exclusions_name", "last_name", "first_name"),
        Index("ix_oig_exclusions_npi", "npi"),
    )
