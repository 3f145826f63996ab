"""
ExploreValley API - Configuration
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "explorevalley-api"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # ── Remote store (Supabase / PostgREST) ───────────────────
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    TABLE_PREFIX: str = "ev_"
    STORE_PAGE_SIZE: int = 1000
    STORE_UPSERT_CHUNK_SIZE: int = 500
    HTTP_TIMEOUT_SECONDS: float = 15.0

    @property
    def rest_url(self) -> str:
        return f"{self.SUPABASE_URL.rstrip('/')}/rest/v1"

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

    # ── Transactions ──────────────────────────────────────────
    BACKUP_ENABLED: bool = True
    BACKUP_MIN_INTERVAL_SECONDS: int = 300   # at most one snapshot per label per window
    BACKUP_KEY_PREFIX: str = "backup"
    BACKUP_SKIP_LABELS: list[str] = ["analytics"]
    BACKUP_RETENTION_SECONDS: int = 7 * 86400
    RULE_EXEMPT_LABELS: list[str] = ["analytics"]

    # ── Idempotency ───────────────────────────────────────────
    IDEMPOTENCY_KEY_TTL_SECONDS: int = 86400

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
