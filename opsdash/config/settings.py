"""
Configuration Management for the Operations Dashboard

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The remote store is optional: when its URL or key is missing the dashboard
runs permanently against the local cache, with a single startup warning.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Remote store (Supabase) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="",
        description="Supabase project URL"
    )
    anon_key: str = Field(
        default="",
        description="Supabase anon/public API key"
    )

    @field_validator("url", "anon_key")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()

    @property
    def is_configured(self) -> bool:
        """Both the endpoint and the key must be present."""
        return bool(self.url and self.anon_key)


class LocalCacheSettings(BaseSettings):
    """Local cache (SQLite) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOCAL_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default="opsdash_cache.sqlite3",
        description="Path of the SQLite file (':memory:' for a throwaway cache)"
    )


class SyncSettings(BaseSettings):
    """Timeouts and retry bounds for remote synchronization."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    remote_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=300,
        description="Upper bound for a single remote call"
    )
    connectivity_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        le=30,
        description="Timeout of the TCP reachability probe"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per pending write when replaying the outbox"
    )
    retry_max_wait_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Maximum backoff between replay attempts"
    )


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="json",
        description="Structured log renderer"
    )


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

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def local_cache(self) -> LocalCacheSettings:
        return LocalCacheSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}. An unconfigured remote
    store is reported as False but is not an error: the dashboard falls
    back to local-only mode.
    """
    results = {}

    settings = get_settings()

    try:
        results["supabase"] = settings.supabase.is_configured
    except Exception as e:
        results["supabase"] = False
        results["supabase_error"] = str(e)

    try:
        _ = settings.local_cache
        results["local_cache"] = True
    except Exception as e:
        results["local_cache"] = False
        results["local_cache_error"] = str(e)

    try:
        _ = settings.sync
        results["sync"] = True
    except Exception as e:
        results["sync"] = False
        results["sync_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
