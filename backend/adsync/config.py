import logging
from pydantic_settings import BaseSettings
from pydantic import model_validator, ConfigDict
from functools import lru_cache

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Service settings, read from the environment or a local .env file."""
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # "development" or "production"
    environment: str = "development"

    # ── Database ─────────────────────────────────────────────────────────
    database_url: str = "postgresql+asyncpg://localhost/campaign_sets"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_connect_timeout: float = 30.0
    db_echo: bool = False

    # ── API surface ──────────────────────────────────────────────────────
    port: int = 8000
    api_key: str = ""  # empty disables the bearer check outside production
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Fernet key for ad-account access tokens at rest
    encryption_key: str = ""

    # ── Reddit Ads ───────────────────────────────────────────────────────
    reddit_ads_api_url: str = "https://ads-api.reddit.com/api/v3"
    reddit_request_timeout: float = 30.0

    # ── Sync jobs and progress stream ────────────────────────────────────
    job_queue_concurrency: int = 2
    job_retention: int = 500  # finished jobs kept in memory for status lookups
    sync_stream_timeout_seconds: float = 300.0
    sync_heartbeat_seconds: float = 15.0

    # Preview warns when more than this percentage of ads would be skipped
    skip_rate_warning_threshold: float = 20.0

    @model_validator(mode="before")
    @classmethod
    def _normalize_database_url(cls, values: dict) -> dict:
        """Hosted Postgres hands out postgresql:// URLs; the engine needs the asyncpg driver."""
        if not isinstance(values, dict):
            return values
        url = values.get("database_url") or ""
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url:
            values["database_url"] = url
        return values

    @model_validator(mode="after")
    def _check_sync_settings(self) -> "Settings":
        if self.job_queue_concurrency < 1:
            raise ValueError("JOB_QUEUE_CONCURRENCY must be at least 1")
        if not 0 <= self.skip_rate_warning_threshold <= 100:
            raise ValueError("SKIP_RATE_WARNING_THRESHOLD is a percentage between 0 and 100")
        if self.sync_heartbeat_seconds <= 0 or self.sync_stream_timeout_seconds <= 0:
            raise ValueError("Sync stream timeout and heartbeat must be positive")
        if self.sync_heartbeat_seconds >= self.sync_stream_timeout_seconds:
            logger.warning(
                f"SYNC_HEARTBEAT_SECONDS ({self.sync_heartbeat_seconds}) is not below "
                f"SYNC_STREAM_TIMEOUT_SECONDS ({self.sync_stream_timeout_seconds}); "
                "streams will close before the first heartbeat"
            )
        return self

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Refuse to start in production without the secrets that guard tenant data."""
        if not self.is_production:
            return self
        missing = [name for name, value in (("API_KEY", self.api_key), ("ENCRYPTION_KEY", self.encryption_key)) if not value]
        if missing:
            raise ValueError(
                f"{' and '.join(missing)} must be set in production. "
                "Generate API_KEY with: python -c \"import secrets; print(secrets.token_hex(32))\" and "
                "ENCRYPTION_KEY with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )
        if "localhost" in self.database_url:
            logger.warning("DATABASE_URL points at localhost in production.")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
