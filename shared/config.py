"""
Shared configuration module for the GameZone client core.
All components read their defaults from this module.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


def health_url_for(base_url: str) -> str:
    """Health endpoint lives beside the API root, not under it."""
    if base_url.endswith("/api"):
        return f"{base_url[:-len('/api')]}/health"
    return f"{base_url}/health"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "GameZone"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Remote service
    API_BASE_URL: str = "https://gamezone-production.up.railway.app/api"
    REQUEST_TIMEOUT_SECONDS: float = Field(15.0, gt=0, description="Per-attempt request deadline")
    MAX_RETRIES: int = Field(3, ge=0, le=10, description="Retries after the first attempt for transient failures")
    RETRY_BACKOFF_SECONDS: float = Field(1.0, ge=0, description="Linear backoff step between retries")

    # Redis (durable key-value storage for credentials and preferences)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    STORAGE_KEY_PREFIX: str = "gamezone:"

    # Push
    PUSH_STREAM_URL: str = ""  # Optional: websocket push gateway
    PUSH_RECONNECT_DELAY_INITIAL: float = 1.0  # seconds
    PUSH_RECONNECT_DELAY_MAX: float = 60.0  # seconds

    # Notifications
    NOTIFICATION_PAGE_SIZE: int = Field(50, ge=1, le=100)

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @field_validator('API_BASE_URL')
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Strip trailing slashes so endpoint joining stays predictable."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API_BASE_URL must be an http(s) URL")
        return v.rstrip("/")

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported LOG_LEVEL: {v}")
        return level

    @property
    def health_url(self) -> str:
        return health_url_for(self.API_BASE_URL)

    def validate_production_settings(self) -> None:
        """Validate settings for production environment."""
        if self.ENVIRONMENT == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if not self.API_BASE_URL.startswith("https://"):
                raise ValueError("API_BASE_URL must use https in production")
            if "localhost" in self.API_BASE_URL:
                raise ValueError("API_BASE_URL must not point to localhost in production")


# Global settings instance
settings = Settings()

# Validate settings on import (only in production)
if settings.ENVIRONMENT == "production":
    try:
        settings.validate_production_settings()
    except ValueError as e:
        import sys
        import logging
        logger = logging.getLogger(__name__)
        logger.critical(f"Production configuration error: {e}", exc_info=True)
        print(f"CRITICAL: Production configuration error: {e}", file=sys.stderr)
        sys.exit(1)
