from typing import Set

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Booklo API"
    VERSION: str = "v1"
    DESCRIPTION: str = "Book lifecycle service for the Booklo reading tracker"

    API_V1_STR: str = "/api/v1"

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./booklo.db"

    # Database Pool Settings (ignored for SQLite)
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600
    DB_POOL_TIMEOUT: int = 30

    # --- Redis / Cache Configuration ---
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    CACHE_TTL: int = 300
    # Rebuild aggregate tables in a background task on its own session
    AGGREGATE_REFRESH_IN_BACKGROUND: bool = True

    # --- Book lifecycle ---
    TAG_UPSERT_MAX_ATTEMPTS: int = 3
    AUDIT_LOGGER_NAME: str = "app.audit"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOGGING_EXCLUDE_PATHS: Set[str] = {"/health", "/metrics", "/favicon.ico"}

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
