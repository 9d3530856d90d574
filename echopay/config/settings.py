"""
Configuration Management for EchoPay

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what each process needs and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerServiceSettings(BaseSettings):
    """Ledger HTTP service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    host: str = Field(
        default="0.0.0.0",
        description="Interface the ledger service binds to"
    )
    port: int = Field(
        default=8081,
        ge=1,
        le=65535,
        description="Port the ledger service listens on"
    )
    journal_path: Optional[str] = Field(
        default=None,
        description="Append-only journal file; unset keeps the ledger in memory only"
    )
    seed_demo_data: bool = Field(
        default=False,
        description="Execute one demo transfer at startup when the ledger is empty"
    )


class SyncSettings(BaseSettings):
    """Client synchronization configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:8081",
        description="Base URL the client polls (ledger service or proxy)"
    )
    poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Period of the per-session refresh tick"
    )
    fetch_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Upper bound on a single fetch before it counts as failed"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class ProxySettings(BaseSettings):
    """Reverse proxy configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PROXY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )

    # Shares its name with the deployment the proxy was written for
    transactions_api_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "TRANSACTIONS_API_BASE_URL",
            "PROXY_TRANSACTIONS_API_BASE_URL",
        ),
        description="Upstream ledger service address"
    )
    upstream_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single upstream request"
    )
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)

    @field_validator('transactions_api_base_url')
    @classmethod
    def normalize_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty value as unset."""
        if v is None or not v.strip():
            return None
        return v.strip().rstrip("/")


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    log_level: str = Field(
        default="INFO",
        description="Root log level for structlog output"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a process only needs its own config

    @property
    def ledger(self) -> LedgerServiceSettings:
        return LedgerServiceSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def proxy(self) -> ProxySettings:
        return ProxySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the groups that failed.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "sync", "proxy", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
