"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from credentialing.core.config import settings
from credentialing.core.exceptions import (
    ConflictError,
    CredentialingError,
    NotFoundError,
    RegistryLookupError,
    StorageError,
    ValidationError,
)
from credentialing.core.structured_logging import configure_logging
from credentialing.db.session import engine

configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Provider records are PHI
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Credentialing API",
    description="Provider credentialing: documents, verifications, phases and alerts",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Provider-Id", "X-Admin-User-Id", "X-Requested-With"],
    expose_headers=["Content-Disposition"],
)

# ============================================================================
# Error Handling
# ============================================================================

# Most specific first; PhaseTransitionError and its subclasses are conflicts
ERROR_STATUS_CODES: list[tuple[type[CredentialingError], int]] = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StorageError, 503),
    (RegistryLookupError, 503),
]


def status_code_for(exc: CredentialingError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@app.exception_handler(CredentialingError)
async def credentialing_error_handler(request: Request, exc: CredentialingError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.warning("Dependency error on %s %s: %s", request.method, request.url.path, exc.code)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
    )


# ============================================================================
# Routers
# ============================================================================

from credentialing.routers import admin_credentialing, internal, provider_credentialing  # noqa: E402

app.include_router(provider_credentialing.router)
app.include_router(admin_credentialing.router)

# Internal endpoints (scheduled/cron jobs - protected by INTERNAL_SECRET)
app.include_router(internal.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
