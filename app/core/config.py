# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string)

    Optional (pricing / cart policy):
      - TAX_RATE (GST on subtotal, default 18%)
      - SHIPPING_FEE (flat shipping, default free)
      - STOCK_LOOKUP_TIMEOUT (seconds per cart line lookup)
    """

    PROJECT_NAME: str = "Storefront Core API"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    DATABASE_URL: str

    # Pricing policy
    TAX_RATE: float = 0.18
    SHIPPING_FEE: float = 0.0

    # Cart validation
    STOCK_LOOKUP_TIMEOUT: float = 5.0

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
