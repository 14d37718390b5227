"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env
file as a fallback. Pydantic Settings resolves values in this order:
  1. Environment variables (highest priority)
  2. .env file values
  3. Defaults defined here (lowest priority)

Usage:
    from fuelauth.config import settings
    print(settings.LOCK_TIMEOUT_SECONDS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the fuel card authorization engine.

    Required fields (no defaults) MUST be set in .env or environment:
      - CARD_HASH_KEY: HMAC key used to hash card numbers before lookup
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Fuel Card Authorization API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for development; use postgresql+asyncpg://... in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/fuelauth.db"

    # Upper bound on how long a unit of work waits for the account/bucket
    # locks before giving up with LOCK_TIMEOUT.
    LOCK_TIMEOUT_SECONDS: float = 5.0

    # --- Card hashing ---
    # REQUIRED: raw PANs are never stored; lookups use HMAC-SHA256(key, PAN)
    CARD_HASH_KEY: str

    # Demo shortcut: resolve a card by its last four digits when the PAN hash
    # matches nothing. Never enable in production.
    ALLOW_LAST4_FALLBACK: bool = False

    # --- Stations ---
    # When False, webhooks from unknown station codes are rejected with
    # STATION_INVALID instead of registering the station on first sight.
    AUTO_CREATE_STATIONS: bool = False

    # --- Cache ---
    # Station lookup cache. Leave REDIS_URL unset to disable caching.
    REDIS_URL: str | None = None
    STATION_CACHE_TTL_SECONDS: int = 300

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "standard"  # "standard" or "json"


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
