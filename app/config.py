# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.database_url)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# Settings are validated once at startup and treated as immutable afterwards.
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    Durations are expressed in seconds.
    """

    # -------------------------------------------------------------------------
    # Database Connection
    # -------------------------------------------------------------------------
    # DATABASE_URL wins when set; otherwise the URL is assembled from parts.

    DATABASE_URL: str | None = Field(
        default=None,
        description="Full SQLAlchemy database URL (overrides DB_HOST/DB_PORT/...)"
    )

    DB_HOST: str = Field(default="localhost", description="Database host")
    DB_PORT: int = Field(default=5432, ge=1, le=65535, description="Database port")
    DB_USER: str = Field(default="postgres", description="Database user")
    DB_PASSWORD: str = Field(default="", description="Database password")
    DB_NAME: str = Field(default="app", description="Database name")

    DB_SSL_MODE: str = Field(
        default="disable",
        description="libpq sslmode (disable, require, verify-full, ...)"
    )

    DB_TIMEZONE: str = Field(
        default="UTC",
        description="Timezone applied to every database session"
    )

    # -------------------------------------------------------------------------
    # Connection Pool Bounds
    # -------------------------------------------------------------------------

    DB_MAX_OPEN_CONNS: int = Field(
        default=25,
        ge=1,
        description="Maximum number of open connections"
    )

    DB_MAX_IDLE_CONNS: int = Field(
        default=5,
        ge=0,
        description="Maximum number of idle connections kept in the pool"
    )

    DB_CONN_MAX_LIFETIME: float = Field(
        default=300.0,
        gt=0,
        description="Connections older than this are recycled"
    )

    DB_CONN_MAX_IDLE_TIME: float = Field(
        default=60.0,
        gt=0,
        description="Connections idle longer than this are replaced on checkout"
    )

    # -------------------------------------------------------------------------
    # Timeouts
    # -------------------------------------------------------------------------

    DB_CONNECT_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for establishing a connection"
    )

    DB_QUERY_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Server-side statement timeout (PostgreSQL only)"
    )

    DB_HEALTH_TIMEOUT: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for a single health probe"
    )

    # -------------------------------------------------------------------------
    # Retry Policy and Supervision Intervals
    # -------------------------------------------------------------------------

    DB_RETRY_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Connection attempts before startup fails"
    )

    DB_RETRY_DELAY: float = Field(
        default=1.0,
        ge=0,
        description="Fixed delay between connection attempts"
    )

    DB_HEALTH_CHECK_INTERVAL: float = Field(
        default=30.0,
        gt=0,
        description="Interval of the periodic full health check"
    )

    DB_METRICS_INTERVAL: float = Field(
        default=10.0,
        gt=0,
        description="Interval of the periodic pool metrics poll"
    )

    DB_HEALTH_CACHE_TTL: float = Field(
        default=10.0,
        ge=0,
        description="How long a health snapshot is served by the fast check"
    )

    DB_AUTO_MIGRATE: bool = Field(
        default=False,
        description="Create missing tables at startup (development only)"
    )

    # -------------------------------------------------------------------------
    # Authentication (OIDC identity provider)
    # -------------------------------------------------------------------------

    AUTH_ISSUER_URL: str | None = Field(
        default=None,
        description="Issuer URL, e.g. https://sso.example.com/realms/app"
    )

    AUTH_JWKS_URL: str | None = Field(
        default=None,
        description="JWKS endpoint (defaults to the Keycloak certs endpoint of the issuer)"
    )

    AUTH_AUDIENCE: str | None = Field(
        default=None,
        description="Expected 'aud' claim; audience is not checked when unset"
    )

    AUTH_JWT_SECRET: str | None = Field(
        default=None,
        description="Shared secret for HS256 tokens (optional)"
    )

    AUTH_JWKS_CACHE_TTL: int = Field(
        default=3600,
        ge=0,
        description="Seconds to cache the JWKS document"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    APP_NAME: str = Field(default="Starter API", description="Service name")

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, SQL echo)"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        frozen=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy URL for the application database.

        Built from the DB_* parts unless DATABASE_URL is set.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        url = URL.create(
            "postgresql+psycopg2",
            username=self.DB_USER,
            password=self.DB_PASSWORD or None,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME,
            query={"sslmode": self.DB_SSL_MODE},
        )
        return url.render_as_string(hide_password=False)

    @property
    def jwks_url(self) -> str | None:
        """JWKS endpoint of the identity provider, if one is configured."""
        if self.AUTH_JWKS_URL:
            return self.AUTH_JWKS_URL
        if self.AUTH_ISSUER_URL:
            return f"{self.AUTH_ISSUER_URL.rstrip('/')}/protocol/openid-connect/certs"
        return None

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def effective_log_level(self) -> str:
        """DEBUG overrides LOG_LEVEL."""
        return "DEBUG" if self.DEBUG else self.LOG_LEVEL

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
