"""Configuration management for the quiz generation service."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Model API
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4"
    openai_base_url: str = "https://api.openai.com/v1"
    api_timeout: float = 300.0  # Large batches can take minutes
    max_retries: int = 2  # Additional attempts after the first
    retry_delay: float = 5.0
    max_completion_tokens: int = 16000
    temperature: float = 0.7

    # Content limits
    max_content_length: int = 100_000
    min_content_length: int = 100

    # Rate Limiting
    rate_limit_per_hour: int = 30
    rate_limit_window: int = 3600  # seconds
    # "memory" for a single process, "redis" when several workers share the ceiling
    rate_limit_storage: Literal["memory", "redis"] = "memory"
    rate_limit_redis_url: str = "redis://localhost:6379/0"


# Global settings instance
settings = Settings()
