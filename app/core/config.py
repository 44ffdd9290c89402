# app/core/config.py
from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_API_KEY = "dummy_key"


class Settings(BaseSettings):
    """
    Application settings, loaded from environment variables and/or .env file.
    """

    # Environment settings
    APP_NAME: str = "GEO Prompt Run Engine"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Comma-delimited list of allowed origins",
    )

    # Database settings
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "geo_engine"
    POSTGRES_SERVER: str = "db"
    POSTGRES_PORT: int = 5432

    # Provider API keys
    OPENAI_API_KEY: str = PLACEHOLDER_API_KEY
    ANTHROPIC_API_KEY: str = PLACEHOLDER_API_KEY
    XAI_API_KEY: str = PLACEHOLDER_API_KEY
    GROQ_API_KEY: str = PLACEHOLDER_API_KEY

    # Celery settings
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"

    # Shared secret for the scheduled-run endpoint
    CRON_SECRET: Optional[str] = Field(default=None, repr=False)

    # Observability settings
    SENTRY_DSN: Optional[str] = None

    @property
    def database_url(self) -> str:
        """Construct the database URL from individual components."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @field_validator("CORS_ALLOW_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        """Allow comma-separated strings for origins env var."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


def is_configured_key(value: Optional[str]) -> bool:
    """True when an API key is present and is not the placeholder."""
    return bool(value) and value.strip() != PLACEHOLDER_API_KEY


settings = Settings()
