"""
Conference API - Configuration Management

Centralized configuration for environment variables, CORS, and deployment settings.
This module ensures:
- No hardcoded secrets
- Environment-specific settings (dev/staging/prod)
- Bounded external call time for identity provider and document store calls
"""

from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (auto-enabled in development)"
    )

    # ==================== SERVER ====================
    SERVER_HOST: str = Field(default="0.0.0.0")
    SERVER_PORT: int = Field(default=8080)
    API_PREFIX: str = Field(
        default="/api/v1",
        description="Prefix for all versioned routes (health stays at the root)"
    )
    API_TITLE: str = Field(default="Conference Registration API")
    API_VERSION: str = Field(default="1.0.0")

    # ==================== FIREBASE ====================
    FIREBASE_CREDENTIALS_FILE: str = Field(
        default="firebase-service-account.json",
        description="Service account JSON; application-default credentials are used if missing"
    )
    FIREBASE_PROJECT_ID: str = Field(default="")
    FIREBASE_CHECK_REVOKED: bool = Field(
        default=False,
        description="Also reject revoked ID tokens (one extra provider round trip)"
    )
    DEFAULT_SIGN_IN_PROVIDER: str = Field(
        default="google.com",
        description="Provider tag recorded when the token carries no sign-in provider claim"
    )

    # ==================== DOCUMENT STORE ====================
    USERS_COLLECTION: str = Field(default="users")
    REGISTRATIONS_COLLECTION: str = Field(default="registrations")
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Ceiling for every identity provider and document store call"
    )
    REGISTRATION_SUBJECT_LOCKING: bool = Field(
        default=True,
        description="Serialize registration writes per subject within this process"
    )

    # ==================== CORS ====================
    FRONTEND_URL: str = Field(default="http://localhost:3000")
    CORS_ORIGINS: str = Field(
        default="",
        description="Comma-separated list of additional allowed origins"
    )

    # ==================== OBSERVABILITY ====================
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def debug_enabled(self) -> bool:
        """Enable debug in development or when explicitly set"""
        return self.DEBUG or self.is_development

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Allowed origins.

        Development: any origin (credentials are then disabled)
        Otherwise: the frontend URL plus CORS_ORIGINS
        """
        if self.is_development:
            return ["*"]

        origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        if self.FRONTEND_URL:
            origins.append(self.FRONTEND_URL)
        return sorted(set(origins))

    @property
    def credentials_file_present(self) -> bool:
        return bool(self.FIREBASE_CREDENTIALS_FILE) and Path(self.FIREBASE_CREDENTIALS_FILE).is_file()

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration for production deployment.
        Returns list of validation errors.
        """
        errors = []

        if self.is_production:
            if not self.FIREBASE_PROJECT_ID and not self.credentials_file_present:
                errors.append("FIREBASE_PROJECT_ID or FIREBASE_CREDENTIALS_FILE is required")

            if "*" in [o.strip() for o in self.CORS_ORIGINS.split(",")]:
                errors.append("CORS_ORIGINS cannot be '*' in production")

            if self.DEBUG:
                errors.append("DEBUG should be False in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the application lifetime.
    """
    settings = Settings()

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.debug_enabled}")

    if settings.is_production:
        errors = settings.validate_production_config()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ValueError(f"Production configuration invalid: {', '.join(errors)}")

    return settings


# ==================== CORS CONFIGURATION ====================

def get_cors_config(settings: Settings) -> dict:
    """
    Get CORS middleware configuration.

    Returns configuration dict for CORSMiddleware.
    """
    origins = settings.cors_origins_list
    wildcard = origins == ["*"]

    return {
        "allow_origins": origins,
        "allow_credentials": not wildcard,
        "allow_methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        "allow_headers": [
            "Origin",
            "Content-Type",
            "Accept",
            "Authorization",
            "X-Request-ID",
        ],
        "expose_headers": ["Content-Length", "X-Request-ID"],
        "max_age": 86400,
    }


# ==================== ENVIRONMENT VALIDATION ====================

def validate_environment(settings: Settings) -> dict:
    """
    Validate environment variables.

    Returns a status dict with validation results.
    """
    status = {
        "valid": True,
        "environment": settings.ENVIRONMENT,
        "errors": [],
        "warnings": [],
    }

    if not settings.credentials_file_present:
        status["warnings"].append(
            f"{settings.FIREBASE_CREDENTIALS_FILE} not found, using application default credentials"
        )
    if not settings.SENTRY_DSN:
        status["warnings"].append("Error tracking disabled")

    errors = settings.validate_production_config()
    if errors:
        status["errors"].extend(errors)
        status["valid"] = False

    return status
