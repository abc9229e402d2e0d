"""Configuration management for the short link service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortlinks.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3 — Override in tests**::
    settings = Settings(_env_file=None, STORE_BACKEND="memory")

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- STORE_BACKEND selects the PostgreSQL-backed store ("sql") or the
  process-local store ("memory") used for local runs.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shortlinks.enums import StoreBackend


class Settings(BaseSettings):
    APP_NAME: str = "shortlinks"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:4000"
    LOG_LEVEL: str = "INFO"

    # Mapping store
    STORE_BACKEND: StoreBackend = StoreBackend.SQL
    DATABASE_URL: str = "postgresql+asyncpg://shortlinks:shortlinks@db:5432/shortlinks"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    STORE_TIMEOUT_SECONDS: float = 5.0
    STORE_PERSIST_RETRIES: int = 3

    # Redis (audit stream, health)
    REDIS_URL: str = "redis://redis:6379/0"

    # Short code namespace
    SHORT_CODE_LENGTH: Annotated[int, Field(ge=4, le=10)] = 6
    CODE_MAX_ATTEMPTS: int = 1000
    DEFAULT_VALIDITY_MINUTES: int = 30

    # Geolocation lookup (ip-api compatible JSON endpoint)
    GEOIP_ENABLED: bool = True
    GEOIP_API_URL: str = "http://ip-api.com/json/{ip}"
    GEOIP_TIMEOUT_SECONDS: float = 2.0

    # Best-effort audit trail
    AUDIT_STREAM_ENABLED: bool = True
    AUDIT_STREAM_KEY: str = "audit_log"
    AUDIT_STREAM_MAXLEN: int = 10000

    # Use the first X-Forwarded-For hop as the client address
    TRUST_FORWARDED_FOR: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
