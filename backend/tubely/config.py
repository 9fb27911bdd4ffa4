"""
Tubely Configuration Management Module

This module provides configuration management for the Tubely video-hosting
backend using Pydantic Settings. It loads and validates the environment
variables required for:
- Application settings (name, environment, debug mode, logging)
- JWT bearer-token verification
- MongoDB connection for the video record store
- Asset persistence (local assets root or S3-compatible bucket)
- Upload size limits for thumbnails and videos
- The ffprobe / ffmpeg command-line tools

All settings support environment variable overrides and .env file loading.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


STORAGE_BACKEND_LOCAL = "local"
STORAGE_BACKEND_S3 = "s3"


class Settings(BaseSettings):
    """
    Configuration settings for the Tubely backend.

    Each storage-related option selects a code path (local vs. remote
    persistence, URL template) rather than altering any algorithm.

    Example usage:
        ```python
        from tubely.config import get_settings

        settings = get_settings()
        print(f"Persisting assets with the {settings.storage_backend} backend")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(default="Tubely", description="Application name shown in docs and logs")

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode and hot-reload")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=False, description="Emit JSON-formatted log records instead of plain text"
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8091, description="Port number for the API server", ge=1, le=65535)

    cors_origins: list[str] = Field(
        default=["http://localhost:8091"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # JWT Configuration
    # =========================================================================

    jwt_secret: str = Field(
        default="development-jwt-secret-change-in-production",
        description="Secret used to verify (and, for tooling, sign) bearer tokens",
        min_length=16,
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_expiration_hours: int = Field(
        default=1, description="Lifetime of tokens issued by tooling, in hours", ge=1, le=168
    )

    jwt_issuer: str | None = Field(
        default="tubely-access", description="Expected 'iss' claim; None disables the check"
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(default="mongodb://localhost:27017", description="MongoDB URI")

    mongodb_db_name: str = Field(default="tubely", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(default=1, description="Minimum pool connections", ge=0)

    mongodb_max_pool_size: int = Field(default=50, description="Maximum pool connections", ge=1)

    # =========================================================================
    # Asset Storage Configuration
    # =========================================================================

    storage_backend: str = Field(
        default=STORAGE_BACKEND_LOCAL,
        description="Where uploaded assets are persisted: 'local' or 's3'",
    )

    assets_root: str = Field(
        default="assets", description="Directory holding locally persisted assets"
    )

    local_base_url: str = Field(
        default="http://localhost:8091",
        description="Public base URL of this server, used to build local asset URLs",
    )

    assets_url_path: str = Field(
        default="assets", description="URL path under which the assets root is served"
    )

    s3_bucket: str | None = Field(default=None, description="S3 bucket for uploaded assets")

    s3_region: str = Field(default="us-east-1", description="AWS region of the S3 bucket")

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL (MinIO); None for AWS S3"
    )

    s3_access_key_id: str | None = Field(
        default=None, description="Access key; None defers to the default boto3 chain"
    )

    s3_secret_access_key: str | None = Field(
        default=None, description="Secret key; None defers to the default boto3 chain"
    )

    s3_cf_distribution: str | None = Field(
        default=None,
        description=(
            "CloudFront distribution host serving the bucket (e.g. d111.cloudfront.net); "
            "any URL scheme is dropped"
        ),
    )

    # =========================================================================
    # Upload Settings
    # =========================================================================

    max_thumbnail_upload_bytes: int = Field(
        default=10 << 20, description="Maximum thumbnail upload size (10 MiB)", ge=1
    )

    max_video_upload_bytes: int = Field(
        default=10 << 30, description="Maximum video upload size (10 GiB)", ge=1
    )

    # =========================================================================
    # Media Tool Settings
    # =========================================================================

    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable")

    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")

    media_tool_timeout_seconds: float | None = Field(
        default=None, description="Timeout for ffprobe/ffmpeg runs; None waits indefinitely"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Validate that storage_backend names a supported backend."""
        valid_backends = {STORAGE_BACKEND_LOCAL, STORAGE_BACKEND_S3}
        normalized = v.lower()
        if normalized not in valid_backends:
            raise ValueError(
                f"Invalid storage_backend '{v}'. Must be one of: {', '.join(valid_backends)}"
            )
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only HMAC algorithms are supported for the shared-secret setup."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("local_base_url", "s3_endpoint_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Base URLs are joined with '/' later on."""
        return v.rstrip("/") if v else v

    @field_validator("assets_url_path")
    @classmethod
    def strip_url_path(cls, v: str) -> str:
        return v.strip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def uses_s3(self) -> bool:
        """True when assets are written to the S3 bucket instead of local disk."""
        return self.storage_backend == STORAGE_BACKEND_S3

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Configuration is read from the environment (and .env) once and the same
    instance is returned afterwards. Tests override it through FastAPI's
    dependency overrides rather than by mutating it.
    """
    return Settings()
