"""
Application configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./assistance.db"

    # Identity tokens are issued upstream; we only verify them
    secret_key: str = "change-this-in-production-minimum-32-characters-long"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440  # 24 hours

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    # API Settings
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Quiz Assistance Ladder"
    version: str = "1.0.0"

    # Assistance ladder
    default_max_attempts: int = 4
    default_passing_score: float = 70.0
    level1_pass_ratio: float = 1.0  # all yes/no answers must be correct

    # Progress store
    progress_conflict_retries: int = 1
    progress_update_timeout_seconds: Optional[float] = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
