"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created per test
- Provider fixtures
- A scripted registry lookup standing in for the external registries
- HTTPX AsyncClient with dependency overrides and identity headers
"""
import os
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator

import pytest

# Must be set before credentialing modules read settings
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["SAM_API_KEY"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["ENV"] = "test"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from credentialing.core.deps import get_db, get_registry_lookup, get_store
from credentialing.db import models  # noqa: F401
from credentialing.db.base import Base
from credentialing.db.enums import VerificationType
from credentialing.db.models import Provider
from credentialing.db.session import SessionLocal, engine
from credentialing.main import app
from credentialing.services.document_storage import LocalDocumentStore
from credentialing.services.registry_lookup import (
    MatchStatus,
    ProviderIdentity,
    RegistryMatch,
    RegistryNotFound,
    RegistryResult,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
ADMIN_ID = "admin-7"


# =============================================================================
# Registry double
# =============================================================================

class FakeRegistry:
    """
    Scripted registry lookup.

    Defaults are the clean outcome for every type: NPI active, DEA valid,
    absent from both exclusion lists.
    """

    def __init__(self, results: dict[VerificationType, RegistryResult] | None = None):
        self.results: dict[VerificationType, RegistryResult] = {
            VerificationType.IDENTITY_NUMBER: RegistryMatch(MatchStatus.ACTIVE, {"npi": "1234567893"}),
            VerificationType.CONTROLLED_SUBSTANCE_REGISTRATION: RegistryMatch(MatchStatus.ACTIVE),
            VerificationType.EXCLUSION_REGISTRY_PRIMARY: RegistryNotFound("No OIG exclusion record"),
            VerificationType.EXCLUSION_REGISTRY_SECONDARY: RegistryNotFound("No SAM.gov exclusion records"),
        }
        self.results.update(results or {})
        self.calls: list[tuple[VerificationType, ProviderIdentity]] = []

    async def __call__(
        self, verification_type: VerificationType, identity: ProviderIdentity
    ) -> RegistryResult:
        self.calls.append((verification_type, identity))
        return self.results[verification_type]


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code commits freely."""
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


def make_provider(db: Session, **overrides) -> Provider:
    values = {
        "first_name": "Jane",
        "last_name": "Doe",
        "email": f"jane-{uuid.uuid4().hex[:8]}@example.com",
        "license_number": "PSY12345",
        "license_state": "CA",
        "npi_number": "1234567893",
        "dea_number": None,
    }
    values.update(overrides)
    provider = Provider(**values)
    db.add(provider)
    db.commit()
    return provider


@pytest.fixture(scope="function")
def provider(db: Session) -> Provider:
    return make_provider(db)


@pytest.fixture(scope="function")
def store(tmp_path) -> LocalDocumentStore:
    return LocalDocumentStore(str(tmp_path / "documents"))


@pytest.fixture(scope="function")
def registry() -> FakeRegistry:
    return FakeRegistry()


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(
    db: Session, store: LocalDocumentStore, registry: FakeRegistry
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient with the test session, a temp document store and the fake registry."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_registry_lookup] = lambda: registry

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


def provider_headers(provider: Provider) -> dict[str, str]:
    return {"X-Provider-Id": str(provider.id)}


def admin_headers(admin_id: str = ADMIN_ID) -> dict[str, str]:
    return {"X-Admin-User-Id": admin_id}
