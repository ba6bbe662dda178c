"""Catalog core configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Catalog settings loaded from environment variables."""

    # Pricing
    currency: str = "TND"
    price_decimal_places: int = Field(default=2, ge=0, le=6)

    # Facets
    facet_cache_size: int = Field(default=32, ge=1)

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
