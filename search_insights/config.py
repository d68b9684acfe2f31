"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = Field(
        default="production", description="Deployment environment"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///data/search_insights.db",
        description="Database connection URL",
    )

    # Google OAuth client (token refresh only)
    google_client_id: str = Field(default="", description="Google OAuth client ID")
    google_client_secret: SecretStr = Field(default="", description="Google OAuth client secret")

    # Google measurement APIs
    google_psi_api_key: SecretStr = Field(
        default="",
        validation_alias=AliasChoices("google_psi_api_key", "pagespeed_api_key"),
        description="PageSpeed Insights API key",
    )
    google_crux_api_key: SecretStr = Field(default="", description="Chrome UX Report API key")

    # Perplexity (AI citation tracking)
    perplexity_api_key: SecretStr = Field(default="", description="Perplexity API key")
    perplexity_model: str = Field(default="sonar-reasoning", description="Perplexity chat model")

    # Cron
    cron_secret: SecretStr = Field(default="", description="Bearer secret for scheduled jobs")

    # Caching
    cache_ttl_hours: int = Field(default=24, description="PSI / CrUX / report cache lifetime")

    # Timeouts
    psi_timeout_seconds: float = Field(default=30.0, description="PageSpeed request timeout")
    crux_timeout_seconds: float = Field(default=10.0, description="CrUX request timeout")

    # Rate limiting (fixed sleeps between sequential calls)
    psi_rate_limit_delay: float = Field(default=1.0, description="Delay between PSI calls")
    client_rate_limit_delay: float = Field(default=1.0, description="Delay between clients in keyword job")
    keyword_rate_limit_delay: float = Field(default=0.1, description="Delay between keyword lookups")
    citation_rate_limit_delay: float = Field(default=1.0, description="Delay between Perplexity queries")
    max_citation_keywords: int = Field(default=10, description="Keywords checked per citation run")

    # Search Console freshness
    gsc_data_delay_days: int = Field(default=2, description="Search Console reporting lag in days")
    stale_data_threshold_days: int = Field(default=4, description="Days behind before data is stale")

    # Tokens
    token_refresh_buffer_seconds: int = Field(
        default=300, description="Refresh access tokens expiring within this window"
    )

    # Logging
    debug_db_logs: bool = Field(default=False, description="Mirror log entries into the logs table")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["json", "text"] = Field(default="text", description="Log output format")

    @property
    def psi_key(self) -> str:
        """PageSpeed API key as a plain string."""
        return self.google_psi_api_key.get_secret_value()

    @property
    def crux_key(self) -> str:
        """CrUX API key, falling back to the PageSpeed key."""
        return self.google_crux_api_key.get_secret_value() or self.psi_key

    @property
    def psi_configured(self) -> bool:
        return bool(self.psi_key)

    @property
    def crux_configured(self) -> bool:
        return bool(self.crux_key)

    @property
    def perplexity_configured(self) -> bool:
        return bool(self.perplexity_api_key.get_secret_value())

    @property
    def google_oauth_configured(self) -> bool:
        """Check if OAuth client credentials are configured."""
        return bool(self.google_client_id and self.google_client_secret.get_secret_value())

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
