"""
Configuration management.

Centralized environment variable management and validation.
"""

from typing import Literal, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from shared.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow case-insensitive env var matching
        extra="ignore"
    )

    # Supabase configuration
    supabase_url: str
    supabase_service_key: str

    # Redis configuration
    redis_url: str

    # JWT configuration
    supabase_jwt_secret: str  # Supabase JWT secret for token validation

    # Frontend configuration
    frontend_url: str  # Frontend domain for CORS

    # AI provider (optional: agents fail with "not configured" when absent)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"

    # Bunny CDN (optional: uploads and media cleanup degrade when absent)
    bunny_storage_zone: Optional[str] = None
    bunny_storage_api_key: Optional[str] = None
    bunny_storage_region: str = ""
    bunny_cdn_url: Optional[str] = None

    # Shotstack (optional: export degrades when absent)
    shotstack_api_key: Optional[str] = None
    shotstack_env: Literal["stage", "v1"] = "stage"

    # Environment
    environment: Literal["development", "staging", "production", "test"] = "development"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Step pipeline
    disabled_steps: str = ""  # Comma-separated optional-step flags, e.g. "animatic,sound"
    store_max_attempts: int = 5
    store_base_delay: float = 0.01  # 10ms, 20ms, 40ms, ...
    agent_max_retries: int = 2
    agent_backoff_seconds: float = 1.0
    pipeline_state_ttl: int = 86400
    session_lock_timeout: int = 300  # outlives the slowest agent call
    session_lock_wait: float = 120.0

    # Upload staging
    upload_ttl_seconds: int = 1800
    upload_sweep_interval_seconds: int = 1800
    upload_max_size_mb: int = 10

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate Supabase URL format."""
        if not v:
            raise ConfigError("SUPABASE_URL is required")
        if not v.startswith(("http://", "https://")):
            raise ConfigError("SUPABASE_URL must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("supabase_service_key")
    @classmethod
    def validate_supabase_service_key(cls, v: str) -> str:
        """Validate Supabase service key format."""
        if not v:
            raise ConfigError("SUPABASE_SERVICE_KEY is required")
        if len(v) < 50:  # Basic format check
            raise ConfigError("SUPABASE_SERVICE_KEY appears to be invalid")
        return v

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v:
            raise ConfigError("REDIS_URL is required")
        if not v.startswith(("redis://", "rediss://")):
            raise ConfigError("REDIS_URL must start with redis:// or rediss://")
        return v

    @field_validator("supabase_jwt_secret")
    @classmethod
    def validate_supabase_jwt_secret(cls, v: str) -> str:
        """Validate Supabase JWT secret format."""
        if not v:
            raise ConfigError("SUPABASE_JWT_SECRET is required")
        if len(v) < 32:
            raise ConfigError("SUPABASE_JWT_SECRET must be at least 32 characters")
        return v

    @field_validator("frontend_url")
    @classmethod
    def validate_frontend_url(cls, v: str) -> str:
        """Validate frontend URL format."""
        if not v:
            raise ConfigError("FRONTEND_URL is required")
        if not v.startswith(("http://", "https://")):
            raise ConfigError("FRONTEND_URL must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate OpenAI API key format when provided."""
        if v and not v.startswith("sk-"):
            raise ConfigError("OPENAI_API_KEY must start with 'sk-'")
        return v or None

    @property
    def bunny_configured(self) -> bool:
        """True when every Bunny CDN credential is present."""
        return bool(self.bunny_storage_zone and self.bunny_storage_api_key and self.bunny_cdn_url)

    @property
    def shotstack_configured(self) -> bool:
        """True when a Shotstack API key is present."""
        return bool(self.shotstack_api_key)

    @property
    def disabled_step_flags(self) -> set[str]:
        """Optional-step flags disabled for every project."""
        return {flag.strip() for flag in self.disabled_steps.split(",") if flag.strip()}


# Singleton instance
try:
    settings = Settings()
except Exception as e:
    # Re-raise as ConfigError for consistency
    if isinstance(e, ConfigError):
        raise
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e
