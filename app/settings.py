"""Application settings using Pydantic BaseSettings."""

import os
import re

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./lead_router.db"


def get_async_database_url() -> str:
    """Get database URL converted for the asyncpg driver."""
    url = os.environ.get("DATABASE_URL", "") or DEFAULT_DATABASE_URL
    # Convert postgres:// to postgresql+asyncpg:// for SQLAlchemy async
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    # asyncpg doesn't support sslmode, it uses ssl parameter
    if "sslmode=" in url:
        url = re.sub(r'[?&]sslmode=[^&]*', '', url)
        url = url.rstrip('?&')
    return url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # GCP Configuration (optional for local dev)
    gcp_project_id: str = "local-development"

    # Database (Postgres in production, SQLite for local dev)
    database_url: str = DEFAULT_DATABASE_URL

    # Redis (optional)
    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = False  # Disable Redis by default for dev

    # JWT (tokens are issued by the external auth service)
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    api_v1_prefix: str = "/api/v1"

    # Idempotency
    idempotency_ttl_seconds: int = 3600

    # Ingestion: "reject" fails the request on a malformed phone,
    # "accept" stores the lead under a fresh contact without dedup
    invalid_phone_policy: str = "reject"

    # Rule snapshot cache
    rule_cache_ttl_seconds: int = 30

    # Lead forwarding
    forwarding_timeout_seconds: float = 10.0
    forwarding_max_retries: int = 3
    forwarding_retry_backoff_seconds: list[int] = [1, 5, 30]
    forwarding_user_agent: str = "LeadRouter-Forwarder/1.0"
    forwarding_max_concurrency: int = 20

    # Cloud Tasks (when the worker URL is unset, deliveries run in-process)
    cloud_tasks_queue_name: str = "lead-forwarding"
    cloud_tasks_location: str = "us-central1"
    cloud_tasks_forwarding_worker_url: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
