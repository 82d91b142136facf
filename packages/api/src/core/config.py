# This project was developed with assistance from AI tools.
"""
Application configuration.

All settings read from environment variables with sensible local dev defaults.
Group related settings together; each group becomes a section future PRs extend.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve project root .env regardless of CWD (matches inference/config.py approach)
_PROJECT_ROOT = Path(__file__).resolve().parents[4]
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings -- single source of truth for env-driven config."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- App --
    APP_NAME: str = "garnet-questionnaire"
    DEBUG: bool = False

    # -- CORS --
    ALLOWED_HOSTS: list[str] = ["http://localhost:3000"]

    # -- Checklist extraction --
    CHECKLIST_MAX_SIZE_MB: int = 25
    EMPTY_EXTRACTION_IS_ERROR: bool = Field(
        default=True,
        description="Treat an extraction that yields zero questions as an extraction failure.",
    )

    # -- Batch answer generation --
    BATCH_POLL_INTERVAL_SECONDS: float = Field(
        default=2.0,
        description="Delay between batch job status polls.",
    )
    BATCH_POLL_MAX_ATTEMPTS: int = Field(
        default=30,
        description="Poll attempts before batch generation reports a soft timeout.",
    )
    BATCH_JOB_RETENTION_SECONDS: float = Field(
        default=3600.0,
        description="How long a finished, unreleased batch job stays queryable.",
    )

    # -- Storage (S3 / MinIO / Spaces) --
    S3_ENDPOINT: str = "http://localhost:9090"
    S3_ACCESS_KEY: str = "minio"
    S3_SECRET_KEY: str = "miniosecret"
    S3_BUCKET: str = "garnet-documents"
    S3_REGION: str = "us-east-1"
    UPLOAD_MAX_SIZE_MB: int = 50

    # -- Review portal --
    PORTAL_BASE_URL: str = Field(
        default="http://localhost:8100",
        description="Base URL of the counter-party review portal API.",
    )
    PORTAL_API_KEY: str | None = Field(
        default=None,
        description="Bearer token for the review portal. Omitted when unset.",
    )
    PORTAL_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Transport-level timeout for portal round-trips.",
    )


settings = Settings()
