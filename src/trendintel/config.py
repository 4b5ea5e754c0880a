"""Configuration management using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRENDINTEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///trendintel.db"

    # Source profiles, weights and quality thresholds
    sources_path: str = "sources.yaml"

    # Adapter fan-out
    adapter_timeout_seconds: float = 20.0
    http_retry_attempts: int = 3
    feed_min_interval_seconds: float = 1.0

    # Raw signal window
    signal_window_days: int = 7
    signal_window_max_size: int = 10_000

    # Scheduled retention sweep
    sweep_interval_seconds: float = 3600.0


settings = Settings()
