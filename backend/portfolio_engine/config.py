# backend/portfolio_engine/config.py
"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables with validation:
- ENVIRONMENT: Runtime mode (development, test, production)
- QUOTE_CACHE_*: Quote cache lifetime and batch fan-out settings
- SOURCE_*: Per-call timeouts and retry budget for upstream quote sources
- FX_*: Exchange-rate provider fallback and cache lifetime

Configuration is validated on application startup. Invalid configuration
will raise a ValueError with a descriptive message.

Usage:
    from portfolio_engine.config import settings

    cache = QuoteCache(resolver, ttl_seconds=settings.quote_cache_ttl_seconds)
"""
from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Find the .env file in project root (parent of backend/)
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_PROJECT_ROOT = _BACKEND_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables:
        - ENVIRONMENT: Runtime environment (development, test, production)
        - APP_NAME: Application name (default: "Portfolio Engine")
        - DEBUG: Enable debug mode (default: False)
        - LOG_LEVEL: Logging level (default: "INFO")
        - LOG_FORMAT: "text" or "json" (default: "text")

    Quote pipeline (optional, with sensible defaults):
        - QUOTE_CACHE_TTL_SECONDS: Freshness window of a cached quote (default: 300)
        - QUOTE_CACHE_IDLE_EVICTION_SECONDS: Idle time before an entry is dropped (default: 3600)
        - QUOTE_BATCH_CONCURRENCY: Parallel resolutions per batch (default: 8)
        - QUOTE_BATCH_DEADLINE_SECONDS: Wall-clock budget of a batch (default: 15)
        - SOURCE_TIMEOUT_SECONDS: Per-call timeout for JSON quote sources (default: 5)
        - METALS_TIMEOUT_SECONDS: Per-call timeout for the metals page scrape (default: 10)
    """

    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Runtime environment (development, test, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format"
    )

    app_name: str = "Portfolio Engine"
    debug: bool = False

    # =========================================================================
    # QUOTE CACHE
    # =========================================================================
    quote_cache_ttl_seconds: float = Field(
        default=300.0,
        ge=30.0,
        le=3600.0,
        description="Seconds a cached quote is served before it is refetched"
    )
    quote_cache_idle_eviction_seconds: float = Field(
        default=3600.0,
        ge=60.0,
        description="Seconds without a request before a symbol is evicted"
    )
    quote_batch_concurrency: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum concurrent symbol resolutions in one batch"
    )
    quote_batch_deadline_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120.0,
        description="Deadline for a whole batch; late symbols fall back to cache"
    )

    # =========================================================================
    # QUOTE SOURCES
    # =========================================================================
    source_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60.0,
        description="Per-call timeout for quote source requests"
    )
    metals_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60.0,
        description="Per-call timeout for the metals page scrape"
    )
    source_retry_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Attempts per adapter call on transient failures"
    )
    breaker_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive source failures before its circuit opens"
    )
    breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Seconds an open circuit waits before probing again"
    )

    # =========================================================================
    # CURRENCY
    # =========================================================================
    reporting_currency: Literal["KRW", "USD"] = Field(
        default="KRW",
        description="Currency all aggregate totals are reported in"
    )
    fx_fallback_rate: Decimal = Field(
        default=Decimal("1350"),
        gt=0,
        description="USD/KRW rate used when every live provider fails"
    )
    fx_cache_ttl_seconds: float = Field(
        default=3600.0,
        ge=0,
        description="Seconds a fetched exchange rate is reused"
    )

    # =========================================================================
    # MANUAL REFRESH
    # =========================================================================
    refresh_cooldown: str = Field(
        default="1/minute",
        description="Rate limit applied to forced quote refreshes per client"
    )

    trust_proxy_headers: bool = Field(
        default=False,
        description="Key rate limits on X-Forwarded-For (only behind a trusted proxy)"
    )

    # =========================================================================
    # CORS
    # =========================================================================
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins (comma-separated in env var)"
    )
    cors_allow_methods: list[str] = Field(
        default=["*"],
        description="Allowed HTTP methods for CORS"
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        description="Allowed HTTP headers for CORS"
    )

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_cache_windows(self) -> "Settings":
        """Idle eviction must never drop an entry that is still fresh."""
        if self.quote_cache_idle_eviction_seconds < self.quote_cache_ttl_seconds:
            raise ValueError(
                "QUOTE_CACHE_IDLE_EVICTION_SECONDS must be at least "
                f"QUOTE_CACHE_TTL_SECONDS ({self.quote_cache_ttl_seconds}), "
                f"got {self.quote_cache_idle_eviction_seconds}"
            )
        return self


# Create single instance
settings = Settings()
