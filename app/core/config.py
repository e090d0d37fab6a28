from functools import lru_cache
from typing import Any, List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except Exception:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")

    # Ledger store: "mongo" for deployments, "memory" for local runs and tests
    ledger_backend: Literal["mongo", "memory"] = Field(default="mongo", alias="LEDGER_BACKEND")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="gpoints", alias="MONGODB_DB_NAME")
    # Multi-document transactions need a replica set (Atlas always has one)
    mongodb_transactions: bool = Field(default=True, alias="MONGODB_TRANSACTIONS")

    # Redis (arq worker and shared accrual pause)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Accrual system
    accrual_system_address: str = Field(default="http://localhost:8080", alias="ACCRUAL_SYSTEM_ADDRESS")
    accrual_timeout_seconds: float = Field(default=5.0, alias="ACCRUAL_TIMEOUT_SECONDS")
    accrual_poll_interval_seconds: float = Field(default=1.0, alias="ACCRUAL_POLL_INTERVAL_SECONDS")
    accrual_batch_size: int = Field(default=100, ge=1, alias="ACCRUAL_BATCH_SIZE")
    accrual_default_retry_after_seconds: float = Field(default=60.0, alias="ACCRUAL_DEFAULT_RETRY_AFTER_SECONDS")
    # inline: asyncio task inside the API process; worker: arq cron; off: nothing polls
    accrual_poller_mode: Literal["inline", "worker", "off"] = Field(default="inline", alias="ACCRUAL_POLLER_MODE")

    # Passwords
    password_pepper: str = Field(default="", alias="PASSWORD_PEPPER")
    bcrypt_rounds: int = Field(default=12, alias="BCRYPT_ROUNDS")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))


@lru_cache
def get_settings() -> Settings:
    return Settings()
