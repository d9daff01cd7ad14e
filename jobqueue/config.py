"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Queue settings loaded from JOBQUEUE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="JOBQUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Store
    database: str = ":memory:"
    database_busy_timeout_seconds: float = 5.0
    database_echo: bool = False

    # Claim protocol
    worker_id: str | None = None
    claim_max_attempts: int = 10
    claim_backoff_base_seconds: float = 0.005
    claim_backoff_max_seconds: float = 0.25

    # Worker Configuration
    worker_poll_interval_seconds: float = 1.0
    worker_concurrency: int = 1

    # Sweeper Configuration
    sweeper_interval_seconds: int = 30
    sweeper_stall_threshold_seconds: int = 300

    # Observability
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "jobqueue"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
