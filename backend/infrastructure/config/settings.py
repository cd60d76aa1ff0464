"""Application settings and configuration."""
import json
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.exceptions import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Paddle Webhook Sync"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("app_environment", "environment"),
    )

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v: Optional[str]) -> str:
        """Lower-case and trim so that "Production" is still production."""
        if not v:
            return "development"
        return str(v).strip().lower()

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1

    # Database (store URL + privileged access key)
    database_url: str = ""
    database_service_key: str = ""
    database_echo: bool = False
    db_pool_size: int = 5
    db_max_overflow: int = 10

    @field_validator("database_url", mode="before")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Auto-convert postgresql:// to postgresql+asyncpg://."""
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+asyncpg://", 1)
            if v.startswith("postgres://"):
                return v.replace("postgres://", "postgresql+asyncpg://", 1)
        return v

    # Paddle
    paddle_webhook_signing_secret: Optional[str] = None
    webhook_timestamp_tolerance_seconds: int = 300
    webhook_log_history_size: int = 100
    webhook_audit_enabled: bool = True

    # Rate limiting
    rate_limit_storage_uri: str = "memory://"

    # Error tracking
    sentry_dsn: Optional[str] = None

    # CORS - stored as str to prevent pydantic-settings auto-JSON-parse failures
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list, stripping trailing slashes."""
        v = self.cors_origins.strip()
        if v.startswith("["):
            try:
                origins = json.loads(v)
                return [o.rstrip("/") for o in origins]
            except json.JSONDecodeError:
                pass
        return [origin.strip().strip("'\"").rstrip("/") for origin in v.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == "development"

    def missing_webhook_config(self) -> list[str]:
        """Return the names of required settings that are not configured."""
        missing = []
        if not self.database_url:
            missing.append("DATABASE_URL")
        if not self.database_service_key:
            missing.append("DATABASE_SERVICE_KEY")
        if self.is_production and not self.paddle_webhook_signing_secret:
            missing.append("PADDLE_WEBHOOK_SIGNING_SECRET")
        return missing

    def validate_webhook_config(self) -> None:
        """Raise ConfigError when a required setting is missing. Called per request."""
        missing = self.missing_webhook_config()
        if missing:
            raise ConfigError(missing=missing, environment=self.environment)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
