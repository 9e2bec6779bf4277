"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.3.0"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./credentialing.db"

    # CORS (admin and provider portals)
    CORS_ORIGINS: str = "http://localhost:3000"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints

    # Document storage
    STORAGE_BACKEND: str = "local"  # local | s3
    LOCAL_STORAGE_PATH: str = "./uploads"
    S3_BUCKET: str = "credentialing-documents"
    S3_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    # External registries
    NPI_API_URL: str = "https://npiregistry.cms.hhs.gov/api/"
    SAM_API_URL: str = "https://api.sam.gov/entity-information/v4/exclusions"
    SAM_API_KEY: str = ""
    OIG_EXCLUSIONS_CSV_URL: str = "https://oig.hhs.gov/exclusions/downloadables/UPDATED.csv"
    REGISTRY_LOOKUP_TIMEOUT_SECONDS: float = 15.0
    REGISTRY_MAX_ATTEMPTS: int = 3

    # Credentialing policy
    EXCLUSION_RECHECK_DAYS: int = 30  # Exclusion lists must be re-checked monthly
    ALERT_SWEEP_MAX_WORKERS: int = 4

    # Provider emails (Resend); without an API key queued emails are skipped
    RESEND_API_KEY: str = ""
    NOTIFICATION_FROM_EMAIL: str = "credentialing@example.com"
    NOTIFICATION_FROM_NAME: str = "Credentialing Team"
    SUPPORT_EMAIL: str = "credentialing@example.com"
    PORTAL_BASE_URL: str = "http://localhost:3000"
    NOTIFICATION_BATCH_SIZE: int = 100

    # Error tracking (optional)
    SENTRY_DSN: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
