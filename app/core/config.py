# python
# app/core/config.py
"""Configuration settings for the Image Chat API.

Uses Pydantic BaseSettings for environment variable management.
"""
import secrets
from enum import Enum

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentEnum(str, Enum):
    development = "development"
    testing = "testing"
    staging = "staging"
    production = "production"


class LogLevelEnum(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormatEnum(str, Enum):
    simple = "simple"
    json = "json"


class DispatchModeEnum(str, Enum):
    deferred = "deferred"  # Starlette BackgroundTasks, runs after the response
    task = "task"  # Unawaited asyncio task
    celery = "celery"  # Celery worker


class Settings(BaseSettings):
    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application Settings =====
    app_name: str = Field(default="Image Chat API", description="Application name")
    environment: EnvironmentEnum = Field(
        default=EnvironmentEnum.development, description="Environment type"
    )
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    # ===== Security Settings =====
    secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="Secret key for signing file URLs",
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm")
    file_url_expire_minutes: int = Field(default=60, description="Signed file URL lifetime")

    # ===== Database Settings =====
    database_url: str | None = Field(default=None, description="Database connection URL")
    db_pool_size: int = Field(default=20, description="Database connection pool size")
    db_max_overflow: int = Field(default=0, description="Database max overflow connections")

    # Test database URL
    test_database_url: str | None = Field(default=None, description="Test database URL")

    # ===== Authentication (Clerk) =====
    clerk_secret_key: str | None = Field(default=None, description="Clerk secret key")
    clerk_api_url: AnyHttpUrl = Field(default="https://api.clerk.com", description="Clerk API URL")

    # ===== Image Providers =====
    cloudflare_builtin: bool = Field(
        default=False, description="Offer host Cloudflare credentials to every user"
    )
    cloudflare_account_id: str | None = Field(default=None, description="Host Cloudflare account ID")
    cloudflare_api_token: str | None = Field(default=None, description="Host Cloudflare API token")
    provider_request_timeout: float = Field(
        default=120.0, description="Provider HTTP request timeout in seconds"
    )
    flux_poll_interval: float = Field(default=0.5, description="Flux result poll interval in seconds")
    flux_max_poll_attempts: int = Field(default=120, description="Flux result poll attempt ceiling")

    # ===== Generation Dispatch =====
    generation_dispatch_mode: DispatchModeEnum = Field(
        default=DispatchModeEnum.deferred, description="How generations are run in the background"
    )
    generation_stale_after_seconds: int = Field(
        default=300, description="Pending generations older than this are considered stalled"
    )

    # ===== File Storage Settings =====
    file_storage_path: str = Field(default="./storage", description="Directory for stored images")
    public_base_url: str = Field(default="", description="Prefix for signed file URLs")
    max_file_size: int = Field(default=20971520, description="Maximum file size in bytes (20MB)")
    max_attachments_per_message: int = Field(default=4, description="Maximum images per message")

    # ===== Redis Configuration =====
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")

    # ===== CORS Settings =====
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://localhost:8080,http://127.0.0.1:3000",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    # ===== Background Tasks (Celery) =====
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", description="Celery result backend"
    )

    # ===== Monitoring & Logging =====
    log_level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Logging level")
    log_format: LogFormatEnum = Field(default=LogFormatEnum.simple, description="Log format")

    # ===== Server Settings =====
    host: str = Field(default="127.0.0.1", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")

    # ===== Computed Properties =====
    @property
    def is_development(self) -> bool:
        return self.environment == EnvironmentEnum.development

    @property
    def is_production(self) -> bool:
        return self.environment == EnvironmentEnum.production

    @property
    def is_testing(self) -> bool:
        return self.environment == EnvironmentEnum.testing

    @property
    def has_builtin_cloudflare(self) -> bool:
        return bool(
            self.cloudflare_builtin and self.cloudflare_account_id and self.cloudflare_api_token
        )

    # ===== Validation Methods =====
    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        if v and isinstance(v, str):
            lv = v.lower()
            if lv in ["dev", "develop"]:
                return "development"
            if lv in ["prod"]:
                return "production"
            return lv
        return v

    @field_validator("max_file_size")
    @classmethod
    def validate_file_size(cls, v):
        if v > 100 * 1024 * 1024:
            raise ValueError("Maximum file size cannot exceed 100MB")
        return v

    @field_validator("flux_max_poll_attempts")
    @classmethod
    def validate_poll_attempts(cls, v):
        if v < 1:
            raise ValueError("Flux poll attempts must be at least 1")
        return v

    @field_validator("database_url", "test_database_url")
    @classmethod
    def use_async_driver(cls, v):
        """Hosted Postgres URLs usually omit the driver; the engine needs asyncpg."""
        if not v:
            return v
        for prefix in ("postgres://", "postgresql://"):
            if v.startswith(prefix):
                return "postgresql+asyncpg://" + v[len(prefix) :]
        return v


settings = Settings()


class ConfigValidator:
    @staticmethod
    def validate_required_settings():
        errors = []
        if not settings.database_url:
            errors.append("DATABASE_URL is required")
        if not settings.clerk_secret_key:
            errors.append("CLERK_SECRET_KEY is required")
        if settings.cloudflare_builtin and not settings.has_builtin_cloudflare:
            errors.append("CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN are required for built-in Cloudflare")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

    @staticmethod
    def get_feature_status() -> dict:
        return {
            "builtin_cloudflare": settings.has_builtin_cloudflare,
            "dispatch_mode": settings.generation_dispatch_mode,
            "file_storage_path": settings.file_storage_path,
            "environment": settings.environment,
        }


def get_config_summary() -> dict:
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "features": ConfigValidator.get_feature_status(),
        "database_configured": bool(settings.database_url),
        "auth_configured": bool(settings.clerk_secret_key),
    }


__all__ = [
    "settings",
    "Settings",
    "ConfigValidator",
    "get_config_summary",
    "EnvironmentEnum",
    "LogLevelEnum",
    "LogFormatEnum",
    "DispatchModeEnum",
]
