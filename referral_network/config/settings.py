"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from referral_network.config.constants import (
    DEFAULT_RECENT_COMMISSION_WINDOW_DAYS,
    MAX_CHAIN_DEPTH,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Application
    environment: str = "production"
    log_level: str = "INFO"
    log_file: str | None = "logs/referral_network.log"

    # Commissions
    commission_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO currency code stored with commission records",
    )
    commission_recent_window_days: int = Field(
        default=DEFAULT_RECENT_COMMISSION_WINDOW_DAYS,
        gt=0,
        description=(
            "Days to look back when deciding whether a subscription "
            "was already active"
        ),
    )

    # Network traversal
    max_chain_depth: int = Field(
        default=MAX_CHAIN_DEPTH,
        gt=0,
        le=MAX_CHAIN_DEPTH,
        description="Upper bound for any upline walk",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("commission_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Store currency codes upper-cased."""
        return v.strip().upper()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate loguru level name."""
        level = v.strip().upper()
        allowed = {
            "TRACE", "DEBUG", "INFO", "SUCCESS",
            "WARNING", "ERROR", "CRITICAL",
        }
        if level not in allowed:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


settings = get_settings()
