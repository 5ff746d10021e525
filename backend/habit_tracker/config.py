"""
Habit Tracker Backend - Application Configuration
=================================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a module-level `settings` object.
Who:   Imported by the app factory, the auth service and the schema manager.
When:  Loaded once at import time; production checks run in the lifespan handler.

Environments:
    development  file database ./database-development.sqlite, DEBUG-friendly
    test         in-memory database shared by all pooled connections
    production   file database with WAL journaling and relaxed fsync

Pool sizing:
    DB_POOL_SIZE      Base connections opened at warm-up (default 5)
    DB_IDLE_TIMEOUT   Milliseconds an overflow connection may sit idle before
                      the reaper closes it; also the reaper tick interval (30000)
    DB_MAX_OVERFLOW   Optional cap on overflow connections. Unset means the
                      pool grows without bound under sustained contention.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Reserved database location for a non-persistent, in-memory instance
MEMORY_DATABASE = ":memory:"

ENVIRONMENTS = {"development", "test", "production"}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have development defaults except the JWT secret, which must be
    provided (and must not be the placeholder value) in production.
    """

    # ── Application ───────────────────────────────────────────────────────
    environment: str = Field(default="development", alias="APP_ENV")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        lowered = v.strip().lower()
        if lowered not in ENVIRONMENTS:
            raise ValueError(f"Invalid APP_ENV '{v}'. Must be one of: {sorted(ENVIRONMENTS)}")
        return lowered

    # ── Database ──────────────────────────────────────────────────────────
    # Empty means "derive from environment" (see resolved_db_path)
    db_path: str = Field(default="", alias="DB_PATH")

    db_pool_size: int = Field(default=5, ge=1, le=100, alias="DB_POOL_SIZE")
    db_idle_timeout_ms: int = Field(default=30_000, ge=1, alias="DB_IDLE_TIMEOUT")
    db_max_overflow: Optional[int] = Field(default=None, ge=0, alias="DB_MAX_OVERFLOW")
    db_busy_timeout_ms: int = Field(default=5_000, ge=0, alias="DB_BUSY_TIMEOUT")

    # Startup warm-up retry (tenacity), see main.warm_up_pool
    db_init_attempts: int = Field(default=3, ge=1, le=10, alias="DB_INIT_ATTEMPTS")
    db_init_retry_min_wait: float = Field(default=0.5, ge=0, alias="DB_INIT_RETRY_MIN_WAIT")
    db_init_retry_max_wait: float = Field(default=5.0, ge=0, alias="DB_INIT_RETRY_MAX_WAIT")

    # ── Authentication ────────────────────────────────────────────────────
    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expires_minutes: int = Field(default=1440, ge=1, alias="JWT_EXPIRES_MINUTES")

    # ── HTTP ──────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, ge=1, le=65535, alias="PORT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    rate_limit_requests: int = Field(default=300, ge=1, alias="RATE_LIMIT_REQUESTS")
    rate_limit_window: int = Field(default=900, ge=1, alias="RATE_LIMIT_WINDOW")  # seconds

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,  # Settings(db_pool_size=2) works in tests
        extra="ignore",
    )

    # ── Derived values ────────────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def resolved_db_path(self) -> str:
        """Database location, falling back to a per-environment default."""
        if self.db_path:
            return self.db_path
        if self.environment == "test":
            return MEMORY_DATABASE
        return f"./database-{self.environment}.sqlite"

    @property
    def db_idle_timeout(self) -> float:
        """Idle timeout in seconds, the unit asyncio timers use."""
        return self.db_idle_timeout_ms / 1000

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Collects every problem, then raises a single ValueError.
        """
        errors = []
        if not self.jwt_secret:
            errors.append("JWT_SECRET is not set.")
        if self.is_production:
            if self.jwt_secret == "your_jwt_secret":
                errors.append("JWT_SECRET must be changed from the default value in production.")
            if self.resolved_db_path == MEMORY_DATABASE:
                errors.append("DB_PATH must point to a file in production.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


settings = Settings()
