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

    # Collaborator API keys (only the worker needs them)
    openai_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    shotstack_api_key: Optional[str] = None

    # Collaborator endpoints and models
    elevenlabs_api_url: str = "https://api.elevenlabs.io/v1"
    shotstack_api_url: str = "https://api.shotstack.io/stage"
    transcription_model: str = "whisper-1"
    structure_model: str = "gpt-4o-mini"

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # Redis Queue configuration
    # REDIS_QUEUE_NAME overrides the derived "studio_pipeline_{environment}" name
    redis_queue_name: Optional[str] = None

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Analysis polling (fixed interval, bounded)
    analysis_poll_interval_seconds: float = 2.0
    analysis_poll_max_attempts: int = 60

    # Variant batches
    max_variants: int = 10
    default_variant_count: int = 3
    fanout_concurrency: int = 5
    worker_max_concurrent_jobs: int = 5
    progress_max_reconnects: int = 5

    # Render polling against the compositing service
    render_poll_interval_seconds: float = 5.0
    render_poll_max_attempts: int = 60

    # Storage
    signed_url_ttl_seconds: int = 3600
    broll_bucket: str = "broll"
    renders_bucket: str = "renders"
    voiceovers_bucket: str = "voiceovers"

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
        if len(v) < 20:  # Basic format check
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

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate OpenAI API key format when one is provided."""
        if v and not v.startswith("sk-"):
            raise ConfigError("OPENAI_API_KEY must start with 'sk-'")
        return v

    @field_validator("max_variants", "analysis_poll_max_attempts", "fanout_concurrency", "worker_max_concurrent_jobs")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Counts and limits must be at least 1."""
        if v < 1:
            raise ConfigError("Limits must be at least 1")
        return v

    @property
    def queue_name(self) -> str:
        """
        Get the Redis queue name, environment-aware.

        If REDIS_QUEUE_NAME is set, use that. Otherwise derive it from the
        environment (e.g. "studio_pipeline_development") so local workers
        never consume production jobs.
        """
        if self.redis_queue_name:
            return self.redis_queue_name
        return f"studio_pipeline_{self.environment}"


# Singleton instance
try:
    settings = Settings()
except Exception as e:
    # Re-raise as ConfigError for consistency
    if isinstance(e, ConfigError):
        raise
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e
