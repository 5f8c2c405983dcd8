"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )

    # ===================
    # TABLES
    # ===================
    prices_table: str = Field(
        default="Product Prices",
        description="Primary product list with pending price updates"
    )
    full_list_table: str = Field(
        default="Full Product List",
        description="Full product reference list"
    )
    stock_balance_table: str = Field(
        default="Stock Balance",
        description="Current stock balance per product"
    )
    stock_log_table: str = Field(
        default="Stock Log",
        description="Daily stock usage log"
    )

    # ===================
    # LOCAL CACHE
    # ===================
    cache_path: Optional[str] = Field(
        default="price_ledger_cache.json",
        description="JSON file backing the local cache (None keeps it in memory)"
    )
    cache_scope: str = Field(
        default="price-ledger",
        description="Key prefix for cached entries"
    )

    # ===================
    # BUSINESS SETTINGS
    # ===================
    default_exchange_rate: Decimal = Field(
        default=Decimal("1.77"),
        gt=0,
        description="Foreign units bought by 1 unit of local currency (1 RM = ¥ rate)"
    )
    stock_log_retention_days: int = Field(
        default=14,
        ge=1,
        le=365,
        description="Days of stock log kept before purge"
    )
    low_stock_threshold: int = Field(
        default=3,
        ge=0,
        le=1000,
        description="Balance at or below which a product is flagged LOW"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
