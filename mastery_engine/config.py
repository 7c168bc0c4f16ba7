"""
Configuration settings for the mastery engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every option can be overridden with a ``MASTERY_`` prefixed environment variable.
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
        env_prefix="MASTERY_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    store_backend: Literal["memory", "redis", "sql"] = Field(
        default="memory",
        description="Key-value backend used for mastery records and test sessions",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection string (store_backend=redis)",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./mastery_engine.db",
        description="Async SQLAlchemy connection string (store_backend=sql)",
    )
    key_prefix: str = Field(
        default="mastery-engine",
        description="Namespace prepended to every persisted key",
    )

    # ========================================
    # Mastery Model
    # ========================================
    decay_rate: float = Field(
        default=0.1,
        ge=0.0,
        description="Exponential forgetting rate (per day) applied at read time",
    )
    default_mastery: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Mastery score assigned to a newly tracked concept",
    )
    default_confidence: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Confidence assigned to a newly tracked concept",
    )
    confidence_increment: float = Field(
        default=0.1,
        ge=0.0,
        description="Confidence gained on every learning signal",
    )

    # ─── Test-mode mastery deltas ───────────────────────────────────────────────
    correct_delta: float = Field(default=0.3, description="Mastery delta for a correct answer")
    partial_delta: float = Field(default=0.1, description="Mastery delta for a partially correct answer")
    incorrect_delta: float = Field(default=-0.2, description="Mastery delta for an incorrect answer")

    # ========================================
    # Test Sessions
    # ========================================
    default_question_count: int = Field(
        default=10,
        ge=1,
        description="Target question count when a session is started without one",
    )
    history_limit: int = Field(
        default=100,
        ge=1,
        description="Number of archived sessions kept in each user's history index",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(default="127.0.0.1", description="API server host")
    api_port: int = Field(default=8100, description="API server port")

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated at 10 MB)",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
