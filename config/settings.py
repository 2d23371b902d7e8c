"""Application settings and configuration management."""
from __future__ import annotations

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interviews.db")

    REDIS_URL: Optional[str] = None
    SESSION_CACHE_TTL_S: int = Field(default=7200, ge=1)
    COMPANY_CACHE_TTL_S: int = Field(default=24 * 3600, ge=1)

    RETRY_ATTEMPTS: int = Field(default=3, ge=1)
    RETRY_BACKOFF_BASE: float = Field(default=2.0, ge=1.0)
    RETRY_DELAY_UNIT_S: float = Field(default=1.0, ge=0.0)
    PROVIDER_TIMEOUT_S: float = Field(default=60.0, ge=0.1)

    DEFAULT_PROVIDER: str = "GOOGLE"
    DEFAULT_DIFFICULTY: str = "Senior"
    DEFAULT_TOTAL_QUESTIONS: int = Field(default=10, ge=1)
    MAX_TOTAL_QUESTIONS: int = Field(default=30, ge=1)

    GOOGLE_API_KEY: Optional[str] = None
    GOOGLE_BASE_URL: str = "https://generativelanguage.googleapis.com"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OLLAMA_BASE_URL: Optional[str] = "http://localhost:11434"
    PROVIDER_CATALOG_PATH: Optional[str] = None

    DEFER_REPORTS: bool = True
    SESSION_IDLE_TIMEOUT_MINUTES: int = Field(default=120, ge=1)
    MAX_UPLOAD_BYTES: int = Field(default=10 * 1024 * 1024, ge=1)
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", validate_assignment=True)


settings = Settings()
