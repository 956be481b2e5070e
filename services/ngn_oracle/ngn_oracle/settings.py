"""Application settings for ngn_oracle."""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .retry import RetryPolicy

DEFAULT_RPC_ENDPOINTS = ",".join([
    "https://mainnet.base.org",
    "https://base.llamarpc.com",
    "https://base.drpc.org",
    "https://base.meowrpc.com",
])

# Read-only calls never sign anything; the key only has to be well formed.
DUMMY_PRIVATE_KEY = "0x" + "0" * 63 + "1"


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App identity & logging
    APP_NAME: str = "ngn_oracle"
    LOG_LEVEL: str = Field("info")

    # Networking (FastAPI/uvicorn)
    HOST: str = "0.0.0.0"
    API_PORT: int = 3000

    # Upstream provider
    RPC_ENDPOINTS: str = DEFAULT_RPC_ENDPOINTS
    ORACLE_CONTRACT_ADDRESS: str = ""
    PRIVATE_KEY: str = DUMMY_PRIVATE_KEY
    RPC_TIMEOUT_SEC: float = 10.0

    # Retry / backoff
    RETRY_MAX_ATTEMPTS: int = Field(3, ge=1)
    RETRY_BASE_DELAY_MS: int = 1000
    RETRY_MAX_DELAY_MS: int = 10000
    RETRY_MULTIPLIER: float = 2.0

    # History, monitor and push delivery
    HISTORY_BATCH_SIZE: int = Field(50, ge=1)
    HISTORY_DEFAULT_BLOCKS: int = 50
    MONITOR_INTERVAL_MS: int = 120000
    FILTER_POLL_INTERVAL_SEC: float = 4.0

    # Display
    BASE_CURRENCY: str = "USD"
    COUNTER_CURRENCY: str = "NGN"

    # CORS (CSV list, e.g. "https://app.example.com,https://foo.bar")
    CORS_ALLOW_ORIGINS: Optional[str] = None

    def endpoint_list(self) -> List[str]:
        return [s.strip() for s in str(self.RPC_ENDPOINTS).split(",") if s.strip()]

    def cors_origin_list(self) -> List[str]:
        if not self.CORS_ALLOW_ORIGINS:
            return ["*"]
        return [s.strip() for s in str(self.CORS_ALLOW_ORIGINS).split(",") if s.strip()]

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.RETRY_MAX_ATTEMPTS,
            base_delay_ms=self.RETRY_BASE_DELAY_MS,
            max_delay_ms=self.RETRY_MAX_DELAY_MS,
            multiplier=self.RETRY_MULTIPLIER,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
