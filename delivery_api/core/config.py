"""
Delivery API — Configuration
All settings are read from environment variables (or .env file).
"""
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "delivery-api"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── Storage ───────────────────────────────────────────────
    # "sql" for PostgreSQL (production), "memory" for demos and tests
    STORAGE_BACKEND: Literal["sql", "memory"] = "sql"

    # ── PostgreSQL ────────────────────────────────────────────
    DATABASE_URL: str | None = None  # overrides the POSTGRES_* settings when set
    POSTGRES_HOST: str = "delivery-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "delivery_db"
    POSTGRES_USER: str = "delivery_user"
    POSTGRES_PASSWORD: str = "delivery_pass"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis ─────────────────────────────────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    IDEMPOTENCY_KEY_TTL_SECONDS: int = 86400

    # ── Optimistic Locking Retry ──────────────────────────────
    OPT_LOCK_MAX_RETRIES: int = 5
    OPT_LOCK_BASE_DELAY_MS: int = 20      # base exponential backoff delay in ms
    OPT_LOCK_MAX_DELAY_MS: int = 500      # max backoff cap in ms
    OPT_LOCK_JITTER_MS: int = 20          # random jitter range in ms

    # ── Dispatch ──────────────────────────────────────────────
    DRIVER_EARNINGS_PER_ORDER: Decimal = Decimal("10.00")
    AVAILABLE_ORDERS_LIMIT: int = 10
    DEFAULT_ESTIMATED_TIME: str = "30-45 دقيقة"

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
