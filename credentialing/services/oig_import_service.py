"""OIG LEIE exclusion list import.

The OIG publishes the full list as a monthly CSV. Each refresh replaces the
local table in one transaction, so lookups never see a half-loaded list.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime

import httpx
from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from credentialing.core.config import settings
from credentialing.core.exceptions import RegistryLookupError, ValidationError
from credentialing.db.models import OIGExclusion
from credentialing.services.http_service import request_with_retries
from credentialing.utils.normalization import normalize_identifier, normalize_name

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000
REQUIRED_COLUMNS = {"LASTNAME", "FIRSTNAME", "EXCLDATE"}
DOWNLOAD_TIMEOUT_SECONDS = 120.0


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0


def _parse_oig_date(value: str | None) -> date | None:
    """OIG dates are YYYYMMDD; all-zero means no date."""
    value = (value or "").strip()
    if not value or value.strip("0") == "":
        return None
    return datetime.strptime(value, "%Y%m%d").date()


def _clean(value: str | None, max_length: int) -> str | None:
    value = (value or "").strip()
    return value[:max_length] if value else None


def parse_oig_csv(text_content: str) -> tuple[list[dict], int]:
    """Parse LEIE CSV text into table rows. Returns (rows, skipped)."""
    reader = csv.DictReader(io.StringIO(text_content.lstrip("\ufeff")))
    if not reader.fieldnames:
        raise ValidationError("OIG CSV has no headers")
    headers = {name.strip().upper() for name in reader.fieldnames}
    missing = REQUIRED_COLUMNS - headers
    if missing:
        raise ValidationError(f"OIG CSV missing columns: {', '.join(sorted(missing))}")

    rows: list[dict] = []
    skipped = 0
    for raw in reader:
        row = {(key or "").strip().upper(): value for key, value in raw.items()}
        try:
            exclusion_date = _parse_oig_date(row.get("EXCLDATE"))
            reinstatement_date = _parse_oig_date(row.get("REINDATE"))
        except ValueError:
            skipped += 1
            continue
        npi = normalize_identifier(row.get("NPI"))
        rows.append(
            {
                "last_name": normalize_name(row.get("LASTNAME"))[:100],
                "first_name": normalize_name(row.get("FIRSTNAME"))[:100],
                "middle_name": _clean(row.get("MIDNAME"), 100),
                "business_name": _clean(row.get("BUSNAME"), 255),
                "specialty": _clean(row.get("SPECIALTY"), 100),
                # The list uses all zeros for "no NPI"
                "npi": npi if npi and npi.strip("0") else None,
                "state": _clean(row.get("STATE"), 2),
                "exclusion_type": _clean(row.get("EXCLTYPE"), 20),
                "exclusion_date": exclusion_date,
                "reinstatement_date": reinstatement_date,
            }
        )
    return rows, skipped


def replace_exclusions(db: Session, rows: list[dict]) -> int:
    """Replace the table contents with `rows` in batches, then commit."""
    if not rows:
        raise ValidationError("OIG CSV contained no exclusion rows; keeping the current list")
    try:
        db.execute(delete(OIGExclusion))
        for start in range(0, len(rows), BATCH_SIZE):
            db.execute(insert(OIGExclusion), rows[start : start + BATCH_SIZE])
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(rows)


def import_csv(db: Session, text_content: str) -> ImportResult:
    rows, skipped = parse_oig_csv(text_content)
    imported = replace_exclusions(db, rows)
    logger.info("OIG exclusion list replaced: %d imported, %d skipped", imported, skipped)
    return ImportResult(imported=imported, skipped=skipped)


async def download_csv(
    url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    base_delay: float = 0.5,
) -> str:
    """Download the LEIE CSV. Raises RegistryLookupError when unavailable."""
    url = url or settings.OIG_EXCLUSIONS_CSV_URL
    try:
        async with httpx.AsyncClient(
            transport=transport, timeout=DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True
        ) as client:
            response = await request_with_retries(
                lambda: client.get(url),
                max_attempts=settings.REGISTRY_MAX_ATTEMPTS,
                base_delay=base_delay,
            )
    except httpx.HTTPError as exc:
        raise RegistryLookupError(f"Failed to download OIG list: {type(exc).__name__}") from exc
    if response.status_code != 200:
        raise RegistryLookupError(f"Failed to download OIG list: HTTP {response.status_code}")
    return response.text


async def refresh_oig_list(
    db: Session,
    url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ImportResult:
    """Download the current list and replace the local copy."""
    text_content = await download_csv(url, transport)
    return import_csv(db, text_content)


def count_exclusions(db: Session) -> int:
    return db.execute(select(func.count()).select_from(OIGExclusion)).scalar_one()
