"""
Configuration settings for the quiz assessment engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///quiz_engine.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # Quiz Defaults
    # ========================================
    default_passing_score: int = Field(
        default=70,
        ge=0,
        le=100,
        description="Passing percentage for new quizzes",
    )
    default_time_limit_minutes: int = Field(
        default=30,
        description="Advisory time limit for new quizzes",
    )
    default_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum scored attempts for new quizzes",
    )
    default_question_points: int = Field(
        default=10,
        gt=0,
        description="Points for questions created without an explicit value",
    )
    question_fetch_limit: int = Field(
        default=500,
        description="Upper bound on questions returned by question listings and bank draws",
    )
    history_limit: int = Field(
        default=100,
        description="Maximum attempts returned by a user's quiz history",
    )

    # ========================================
    # Certificates
    # ========================================
    certificate_prefix: str = Field(
        default="CERT",
        description="Prefix for generated certificate numbers",
    )
    certificate_url_base: str = Field(
        default="/certificates",
        description="Base path for certificate links stored on attempts",
    )
    certificate_validity_days: int | None = Field(
        default=None,
        description="Days until an issued certificate expires (None = never)",
    )

    # ========================================
    # Import / Export
    # ========================================
    export_format_version: str = Field(
        default="1.0",
        description="Version tag written into quiz export snapshots",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/quiz_engine.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    def is_sqlite(self) -> bool:
        """Return True when the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
