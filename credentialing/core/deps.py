"""FastAPI dependencies for database access, collaborators and caller identity.

Authentication is owned by the platform gateway, which forwards the
authenticated caller as headers; credentialing only reads them.
"""

from typing import Generator
from uuid import UUID

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from credentialing.core.config import settings
from credentialing.db.session import SessionLocal
from credentialing.services.document_storage import DocumentStore, get_document_store
from credentialing.services.registry_lookup import RegistryClient, RegistryLookup

PROVIDER_HEADER = "X-Provider-Id"
ADMIN_HEADER = "X-Admin-User-Id"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store() -> DocumentStore:
    """Document store for the configured backend."""
    return get_document_store()


def get_registry_lookup() -> RegistryLookup:
    """Production registry lookup (overridden in tests)."""
    return RegistryClient()


def get_current_provider_id(
    x_provider_id: str | None = Header(default=None, alias=PROVIDER_HEADER),
) -> UUID:
    """Authenticated provider forwarded by the gateway."""
    if not x_provider_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return UUID(x_provider_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid provider identity")


def get_admin_actor(
    x_admin_user_id: str | None = Header(default=None, alias=ADMIN_HEADER),
) -> str:
    """Authenticated admin user id forwarded by the gateway."""
    if not x_admin_user_id or not x_admin_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_admin_user_id.strip()[:64]


def verify_internal_secret(x_internal_secret: str | None = Header(default=None)) -> None:
    """Verify the internal secret header for scheduled endpoints."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")
