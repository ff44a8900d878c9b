"""Configuration management service with Pydantic Settings.

This module provides centralized configuration for the Token Trust Tracker,
loading and validating environment variables (and `.env`) at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class MissingConfigurationError(ValueError):
    """Raised when an optional collaborator is constructed without its settings."""

    def __init__(self, setting: str) -> None:
        super().__init__(f"Missing setting {setting}")
        self.setting = setting


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///./trust.db",
        alias="DATABASE_URL",
        description="PostgreSQL or SQLite connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings (cache and sell-directive stream)."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; unset uses an in-process cache and disables the queue",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class RetrySettings(BaseSettings):
    """Retry envelope for outbound HTTP requests."""

    model_config = SettingsConfigDict(env_prefix="FETCH_", extra="ignore")

    max_retries: int = Field(default=3, alias="FETCH_MAX_RETRIES", ge=1)
    initial_delay_seconds: float = Field(default=1.0, alias="FETCH_INITIAL_DELAY_SECONDS", ge=0)
    max_delay_seconds: float = Field(default=30.0, alias="FETCH_MAX_DELAY_SECONDS", ge=0)
    backoff_factor: float = Field(default=2.0, alias="FETCH_BACKOFF_FACTOR", ge=1)
    timeout_seconds: float = Field(
        default=30.0,
        alias="FETCH_TIMEOUT_SECONDS",
        gt=0,
        description="Per-request timeout passed to the HTTP client",
    )


class ProviderSettings(BaseSettings):
    """Market-data provider credentials and cache lifetimes."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    birdeye_api_key: SecretStr | None = Field(default=None, alias="BIRDEYE_API_KEY")
    helius_api_key: SecretStr | None = Field(default=None, alias="HELIUS_API_KEY")
    coingecko_api_key: SecretStr | None = Field(default=None, alias="COINGECKO_API_KEY")
    codex_api_key: SecretStr | None = Field(default=None, alias="CODEX_API_KEY")
    solana_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        alias="SOLANA_RPC_URL",
        description="Solana JSON-RPC endpoint used for recommender balances",
    )
    wallet_public_key: str | None = Field(
        default=None,
        alias="SOLANA_PUBLIC_KEY",
        description="Wallet whose portfolio is reported and passed to the process backend",
    )
    helius_max_pages: int = Field(
        default=2,
        alias="HELIUS_MAX_PAGES",
        ge=1,
        description="Page cap for holder-list pagination",
    )

    price_ttl: str = Field(default="5m", alias="CACHE_TTL_PRICE")
    trade_data_ttl: str = Field(default="1m", alias="CACHE_TTL_TRADE_DATA")
    security_ttl: str = Field(default="5m", alias="CACHE_TTL_SECURITY")
    overview_ttl: str = Field(default="1h", alias="CACHE_TTL_OVERVIEW")
    holders_ttl: str = Field(default="10m", alias="CACHE_TTL_HOLDERS")
    pairs_ttl: str = Field(default="1m", alias="CACHE_TTL_PAIRS")
    portfolio_ttl: str = Field(default="5m", alias="CACHE_TTL_PORTFOLIO")

    @field_validator("solana_rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """Validate RPC URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("RPC URL must be an HTTP(S) endpoint")
        return v


class BackendSettings(BaseSettings):
    """Outbound collaborators: analytics mirror and process-control backend."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    backend_url: str | None = Field(default=None, alias="BACKEND_URL")
    backend_token: SecretStr | None = Field(default=None, alias="BACKEND_TOKEN")
    sonar_url: str | None = Field(default=None, alias="SONAR_URL")
    sonar_token: SecretStr | None = Field(default=None, alias="SONAR_TOKEN")

    @property
    def mirror_enabled(self) -> bool:
        """Check if the analytics mirror is configured."""
        return bool(self.backend_url and self.backend_token)

    @property
    def process_control_enabled(self) -> bool:
        """Check if the process-control backend is configured."""
        return bool(self.sonar_url and self.sonar_token)


class TrustSettings(BaseSettings):
    """Trust scoring heuristics."""

    model_config = SettingsConfigDict(env_prefix="TRUST_", extra="ignore")

    decay_rate: float = Field(default=0.95, alias="TRUST_DECAY_RATE", gt=0, le=1)
    max_decay_days: int = Field(default=30, alias="TRUST_MAX_DECAY_DAYS", ge=0)
    rug_pull_weight: float = Field(default=10.0, alias="TRUST_RUG_PULL_WEIGHT")
    scam_weight: float = Field(default=10.0, alias="TRUST_SCAM_WEIGHT")
    rapid_dump_weight: float = Field(default=5.0, alias="TRUST_RAPID_DUMP_WEIGHT")
    suspicious_volume_weight: float = Field(default=5.0, alias="TRUST_SUSPICIOUS_VOLUME_WEIGHT")
    virtual_confidence_divisor: float = Field(
        default=1_000_000.0,
        alias="TRUST_VIRTUAL_CONFIDENCE_DIVISOR",
        gt=0,
        description="Recommender wallet balance is divided by this to obtain virtual confidence",
    )


class SimulationSettings(BaseSettings):
    """Simulated selling orchestrator settings."""

    model_config = SettingsConfigDict(env_prefix="SIMULATION_", extra="ignore")

    stream: str = Field(
        default="process_eliza_simulation",
        alias="SIMULATION_STREAM",
        description="Redis stream carrying sell directives",
    )
    consumer_group: str = Field(default="trust-tracker", alias="SIMULATION_CONSUMER_GROUP")
    consumer_name: str = Field(default="trust-tracker-1", alias="SIMULATION_CONSUMER_NAME")
    prefetch: int = Field(
        default=10,
        alias="SIMULATION_PREFETCH",
        ge=1,
        description="Maximum sell directives handled concurrently",
    )
    block_ms: int = Field(default=5000, alias="SIMULATION_BLOCK_MS", ge=0)
    scan_interval_seconds: float = Field(
        default=0.0,
        alias="SIMULATION_SCAN_INTERVAL_SECONDS",
        ge=0,
        description="Periodic scan-and-start interval; 0 runs the scan only at start-up",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from token_trust_tracker.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.trust.decay_rate)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    retry: RetrySettings = Field(
        default_factory=lambda: RetrySettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    providers: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    backends: BackendSettings = Field(
        default_factory=lambda: BackendSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    trust: TrustSettings = Field(
        default_factory=lambda: TrustSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    simulation: SimulationSettings = Field(
        default_factory=lambda: SimulationSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        providers = self.providers
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "providers": {
                "birdeye_api_key": _set_or_not(providers.birdeye_api_key),
                "helius_api_key": _set_or_not(providers.helius_api_key),
                "coingecko_api_key": _set_or_not(providers.coingecko_api_key),
                "codex_api_key": _set_or_not(providers.codex_api_key),
                "solana_rpc_url": providers.solana_rpc_url,
                "wallet_public_key": providers.wallet_public_key or "(not set)",
            },
            "backends": {
                "backend_url": self.backends.backend_url or "(not set)",
                "backend_token": _set_or_not(self.backends.backend_token),
                "sonar_url": self.backends.sonar_url or "(not set)",
                "sonar_token": _set_or_not(self.backends.sonar_token),
            },
            "trust": {
                "decay_rate": str(self.trust.decay_rate),
                "max_decay_days": str(self.trust.max_decay_days),
            },
            "simulation": {
                "stream": self.simulation.stream,
                "consumer_group": self.simulation.consumer_group,
                "prefetch": str(self.simulation.prefetch),
            },
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


def _set_or_not(value: SecretStr | None) -> str:
    return "(set)" if value else "(not set)"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (used by tests that change the environment)."""
    get_settings.cache_clear()
