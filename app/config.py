"""
Wellspring — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.

The personalization core (``app.services.score_service`` through
``app.services.session_service``) never reads configuration; only the
integration layer and the external collaborators do.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Wellspring personalization service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Gemini LLM (chat assistant + session summaries)
    # ------------------------------------------------------------------ #
    GEMINI_API_KEY: str
    GEMINI_MODEL_PRIMARY: str = "gemini-2.5-flash"
    GEMINI_MODEL_FALLBACK: str = "gemini-2.0-flash"
    GEMINI_MAX_OUTPUT_TOKENS: int = 1024

    # ------------------------------------------------------------------ #
    # Database – PostgreSQL via asyncpg
    # ------------------------------------------------------------------ #
    DATABASE_URL: str

    # ------------------------------------------------------------------ #
    # Video search – YouTube Data API v3
    # ------------------------------------------------------------------ #
    YOUTUBE_API_KEY: str = ""
    YOUTUBE_API_BASE_URL: str = "https://www.googleapis.com/youtube/v3"
    VIDEO_SEARCH_TIMEOUT_S: float = 10.0
    VIDEO_RESULTS_PER_QUERY: int = 3
    VIDEO_QUERY_BUDGET: int = 10

    # ------------------------------------------------------------------ #
    # Integration-layer caches and history windows
    # ------------------------------------------------------------------ #
    PROFILE_CACHE_SIZE: int = 1024
    SESSION_HISTORY_LIMIT: int = 3

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_S: float = 70.0

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def gemini_model_chain(self) -> list[str]:
        return [
            m for m in (self.GEMINI_MODEL_PRIMARY, self.GEMINI_MODEL_FALLBACK) if m
        ]

    @field_validator(
        "PROFILE_CACHE_SIZE",
        "SESSION_HISTORY_LIMIT",
        "VIDEO_RESULTS_PER_QUERY",
        "VIDEO_QUERY_BUDGET",
    )
    @classmethod
    def _must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be a positive integer, got {v}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from app.config import get_settings
        settings = get_settings()
    """
    return Settings()  # type: ignore[call-arg]
