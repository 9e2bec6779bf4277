"""External registry lookups.

Every lookup returns one of three tagged variants and never raises:

- ``RegistryMatch``: the registry has the subject; ``status`` says whether
  the entry is active, inactive or an exclusion
- ``RegistryNotFound``: the registry answered and does not know the subject
- ``RegistryFailure``: the registry could not answer (network, config, data)

Registries:
- identity_number: CMS NPI Registry API v2.1
- controlled_substance_registration: DEA number format and check digit
- exclusion_registry_primary: local copy of the OIG LEIE list
- exclusion_registry_secondary: SAM.gov Exclusions API
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Union

import httpx
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from credentialing.core.config import settings
from credentialing.db.enums import VerificationType
from credentialing.db.models import OIGExclusion, Provider
from credentialing.services.http_service import request_with_retries
from credentialing.utils.dates import utc_now
from credentialing.utils.normalization import normalize_identifier, normalize_name

logger = logging.getLogger(__name__)

NPI_API_VERSION = "2.1"
NPI_PATTERN = re.compile(r"^\d{10}$")
DEA_PATTERN = re.compile(r"^[A-Z]{2}\d{7}$")

# First letter of a DEA number: registrant type
DEA_REGISTRANT_TYPES = {
    "A": "Deprecated (replaced by F)",
    "B": "Hospital/Clinic",
    "C": "Practitioner",
    "D": "Teaching Institution",
    "E": "Manufacturer",
    "F": "Distributor",
    "G": "Researcher",
    "H": "Analytical Lab",
    "J": "Importer",
    "K": "Exporter",
    "L": "Reverse Distributor",
    "M": "Mid-Level Practitioner",
    "P": "Narcotic Treatment Program",
    "R": "Reverse Distributor",
    "S": "Supplier",
    "T": "Teaching Institution (research)",
    "U": "Narcotic Treatment Program (research)",
    "X": "Buprenorphine Waiver Practitioner",
}
MID_LEVEL_REGISTRANT = "M"


# =============================================================================
# Result variants
# =============================================================================


class MatchStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class RegistryMatch:
    status: MatchStatus
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RegistryNotFound:
    reason: str


@dataclass(frozen=True)
class RegistryFailure:
    reason: str


RegistryResult = Union[RegistryMatch, RegistryNotFound, RegistryFailure]


@dataclass(frozen=True)
class ProviderIdentity:
    """What a registry needs to know about a provider."""

    first_name: str
    last_name: str
    npi_number: str | None = None
    dea_number: str | None = None
    state: str | None = None

    @classmethod
    def from_provider(cls, provider: Provider, npi_number: str | None = None) -> "ProviderIdentity":
        return cls(
            first_name=provider.first_name,
            last_name=provider.last_name,
            npi_number=npi_number or provider.npi_number,
            dea_number=provider.dea_number,
            state=provider.license_state,
        )


RegistryLookup = Callable[[VerificationType, ProviderIdentity], Awaitable[RegistryResult]]


# =============================================================================
# DEA (pure)
# =============================================================================


def dea_check_digit_valid(digits: str) -> bool:
    """(d1 + d3 + d5 + 2 * (d2 + d4 + d6)) mod 10 must equal d7."""
    if not re.fullmatch(r"\d{7}", digits):
        return False
    d = [int(ch) for ch in digits]
    total = d[0] + d[2] + d[4] + 2 * (d[1] + d[3] + d[5])
    return total % 10 == d[6]


def validate_dea_number(dea_number: str, last_name: str | None = None) -> list[str]:
    """
    Validate DEA number format. Returns a list of problems (empty when valid).

    Format only: an active registration cannot be confirmed without DEA access.
    """
    clean = normalize_identifier(dea_number)
    if not DEA_PATTERN.match(clean):
        return ["Invalid DEA format; expected 2 letters followed by 7 digits"]

    errors = []
    registrant, initial, digits = clean[0], clean[1], clean[2:]
    if registrant not in DEA_REGISTRANT_TYPES:
        errors.append(f"Invalid registrant type letter: {registrant}")

    expected_initial = normalize_name(last_name)[:1] if last_name else ""
    if expected_initial and initial != expected_initial and registrant != MID_LEVEL_REGISTRANT:
        errors.append(
            f"Second letter of DEA number ({initial}) does not match last name initial"
        )

    if not dea_check_digit_valid(digits):
        errors.append("Invalid check digit")
    return errors


# =============================================================================
# Registry client
# =============================================================================


class RegistryClient:
    """
    Production registry lookup; an instance is a ``RegistryLookup``.

    HTTP registries go through ``request_with_retries``. The OIG list lives in
    the database and is queried on a worker thread with its own session.
    """

    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int | None = None,
        base_delay: float = 0.5,
    ):
        if session_factory is None:
            from credentialing.db.session import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory
        self.transport = transport
        self.max_attempts = max_attempts or settings.REGISTRY_MAX_ATTEMPTS
        self.base_delay = base_delay

    async def __call__(
        self, verification_type: VerificationType, identity: ProviderIdentity
    ) -> RegistryResult:
        return await self.lookup(verification_type, identity)

    async def lookup(
        self, verification_type: VerificationType, identity: ProviderIdentity
    ) -> RegistryResult:
        try:
            if verification_type == VerificationType.IDENTITY_NUMBER:
                return await self.lookup_npi(identity.npi_number)
            if verification_type == VerificationType.CONTROLLED_SUBSTANCE_REGISTRATION:
                return self.lookup_dea(identity.dea_number, identity.last_name)
            if verification_type == VerificationType.EXCLUSION_REGISTRY_PRIMARY:
                return await run_in_threadpool(self.lookup_oig, identity)
            if verification_type == VerificationType.EXCLUSION_REGISTRY_SECONDARY:
                return await self.lookup_sam(identity)
        except (httpx.HTTPError, ValueError, SQLAlchemyError) as exc:
            logger.warning(
                "Registry lookup failed for %s", verification_type.value, exc_info=True
            )
            return RegistryFailure(f"{type(exc).__name__} contacting registry")
        return RegistryFailure(f"No registry configured for {verification_type.value}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            timeout=settings.REGISTRY_LOOKUP_TIMEOUT_SECONDS,
        )

    # -------------------------------------------------------------------------
    # NPI
    # -------------------------------------------------------------------------

    async def lookup_npi(self, npi_number: str | None) -> RegistryResult:
        npi = normalize_identifier(npi_number)
        if not npi:
            return RegistryNotFound("No NPI number on file")
        if not NPI_PATTERN.match(npi):
            return RegistryNotFound("Invalid NPI format; must be exactly 10 digits")

        async with self._client() as client:
            response = await request_with_retries(
                lambda: client.get(
                    settings.NPI_API_URL,
                    params={"version": NPI_API_VERSION, "number": npi},
                ),
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
            )
        if response.status_code != 200:
            return RegistryFailure(f"NPI Registry returned HTTP {response.status_code}")

        data = response.json()
        if data.get("Errors"):
            return RegistryFailure("NPI Registry rejected the query")
        results = data.get("results") or []
        if not data.get("result_count") or not results:
            return RegistryNotFound("NPI number not found in registry")

        entry = results[0]
        basic = entry.get("basic") or {}
        taxonomies = entry.get("taxonomies") or []
        primary = next((t for t in taxonomies if t.get("primary")), taxonomies[0] if taxonomies else None)
        individual = entry.get("enumeration_type") == "NPI-1"
        if individual:
            name = " ".join(
                part for part in (basic.get("first_name"), basic.get("last_name")) if part
            )
        else:
            name = basic.get("organization_name") or basic.get("name") or ""

        details = {
            "npi": entry.get("number", npi),
            "name": name,
            "credential": basic.get("credential"),
            "enumeration_type": "individual" if individual else "organization",
            "registry_status": basic.get("status"),
            "last_updated": basic.get("last_updated"),
            "taxonomy_code": primary.get("code") if primary else None,
            "taxonomy": primary.get("desc") if primary else None,
            "license_state": primary.get("state") if primary else None,
        }
        status = MatchStatus.ACTIVE if basic.get("status") == "A" else MatchStatus.INACTIVE
        return RegistryMatch(status=status, details=details)

    # -------------------------------------------------------------------------
    # DEA
    # -------------------------------------------------------------------------

    def lookup_dea(self, dea_number: str | None, last_name: str | None) -> RegistryResult:
        if not dea_number:
            return RegistryNotFound("No DEA number on file")
        errors = validate_dea_number(dea_number, last_name)
        if errors:
            return RegistryNotFound("; ".join(errors))
        clean = normalize_identifier(dea_number)
        return RegistryMatch(
            status=MatchStatus.ACTIVE,
            details={
                "registrant_type": clean[0],
                "registrant_type_description": DEA_REGISTRANT_TYPES[clean[0]],
                "validation": "format_and_check_digit",
            },
        )

    # -------------------------------------------------------------------------
    # OIG LEIE
    # -------------------------------------------------------------------------

    def lookup_oig(self, identity: ProviderIdentity) -> RegistryResult:
        db = self.session_factory()
        try:
            return oig_lookup(db, identity)
        finally:
            db.close()

    # -------------------------------------------------------------------------
    # SAM.gov
    # -------------------------------------------------------------------------

    async def lookup_sam(self, identity: ProviderIdentity) -> RegistryResult:
        if not settings.SAM_API_KEY:
            return RegistryFailure("SAM.gov API key not configured")

        async with self._client() as client:
            response = await request_with_retries(
                lambda: client.get(
                    settings.SAM_API_URL,
                    params={
                        "api_key": settings.SAM_API_KEY,
                        "firstName": identity.first_name,
                        "lastName": identity.last_name,
                    },
                ),
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
            )
        if response.status_code != 200:
            return RegistryFailure(f"SAM.gov returned HTTP {response.status_code}")

        data = response.json()
        entities = data.get("excludedEntity") or []
        if not data.get("totalRecords") or not entities:
            return RegistryNotFound("No SAM.gov exclusion records")

        entity = entities[0]
        actions = (entity.get("exclusionActions") or {}).get("listOfActions") or [{}]
        action = actions[0]
        details = {
            "classification": (entity.get("exclusionDetails") or {}).get("classificationType"),
            "exclusion_type": (entity.get("exclusionDetails") or {}).get("exclusionType"),
            "activation_date": action.get("activateDate"),
            "termination_date": action.get("terminationDate"),
            "total_records": data.get("totalRecords"),
        }
        return RegistryMatch(status=MatchStatus.EXCLUDED, details=details)


def oig_lookup(db: Session, identity: ProviderIdentity, today: date | None = None) -> RegistryResult:
    """
    Match a provider against the local OIG LEIE table.

    Name match (upper-cased first and last name) or NPI match. A reinstatement
    date in the past means the listing is no longer an active exclusion.
    """
    today = today or utc_now().date()
    if not db.execute(select(func.count()).select_from(OIGExclusion)).scalar_one():
        return RegistryFailure("OIG exclusion list has not been loaded")

    first = normalize_name(identity.first_name)
    last = normalize_name(identity.last_name)
    npi = normalize_identifier(identity.npi_number)

    conditions = [(OIGExclusion.first_name == first) & (OIGExclusion.last_name == last)]
    if npi:
        conditions.append(OIGExclusion.npi == npi)
    matches = list(db.execute(select(OIGExclusion).where(or_(*conditions))).scalars())
    if not matches:
        return RegistryNotFound("No OIG exclusion record")

    matched_on = set()
    for row in matches:
        if row.first_name == first and row.last_name == last:
            matched_on.add("name")
        if npi and row.npi == npi:
            matched_on.add("npi")

    # Any listing without a past reinstatement is an active exclusion
    active = [
        row for row in matches
        if row.reinstatement_date is None or row.reinstatement_date > today
    ]
    row = active[0] if active else matches[0]
    details = {
        "matched_on": sorted(matched_on),
        "confidence": "high" if matched_on == {"name", "npi"} else "medium",
        "exclusion_type": row.exclusion_type,
        "exclusion_date": row.exclusion_date.isoformat() if row.exclusion_date else None,
        "reinstatement_date": (
            row.reinstatement_date.isoformat() if row.reinstatement_date else None
        ),
        "state": row.state,
    }
    status = MatchStatus.EXCLUDED if active else MatchStatus.ACTIVE
    return RegistryMatch(status=status, details=details)
