"""
Prompt-run engine configuration.
"""

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromptRunSettings(BaseSettings):
    """Tunables for batch execution, extraction and aggregation"""

    # Worker pool
    PROMPT_RUN_CONCURRENCY: int = Field(
        default=15, description="Default worker-pool width for one batch"
    )
    PROMPT_RUN_MAX_CONCURRENCY: int = Field(
        default=50, description="Upper clamp for caller-supplied pool widths"
    )
    PROMPT_RUN_DEFAULT_PROVIDER: str = Field(default="chatgpt")

    # Deadlines
    PROMPT_RUN_PROVIDER_TIMEOUT_SECONDS: float = Field(
        default=45.0, description="Deadline for one provider call"
    )
    PROMPT_RUN_CLASSIFIER_TIMEOUT_SECONDS: float = Field(
        default=20.0, description="Deadline for one classifier call"
    )
    PROMPT_RUN_STALE_AFTER_SECONDS: int = Field(
        default=900,
        description="Age after which a running batch is read as failed",
    )

    # Signal extraction
    PROMPT_RUN_MAX_BRANDS: int = Field(
        default=25, description="Maximum brand rows stored per run"
    )
    PROMPT_RUN_CONTEXT_WINDOW: int = Field(
        default=100, description="Characters kept either side of a mention"
    )
    PROMPT_RUN_CLASSIFIER_MODEL: str = Field(
        default="meta-llama/llama-4-maverick-17b-128e-instruct"
    )
    PROMPT_RUN_CLASSIFIER_BASE_URL: str = Field(
        default="https://api.groq.com/openai/v1"
    )

    # Citation enrichment
    PROMPT_RUN_ENRICH_CITATIONS: bool = Field(default=True)
    PROMPT_RUN_ENRICH_TIMEOUT_SECONDS: float = Field(default=5.0)

    # Scheduled all-domain run
    PROMPT_RUN_SCHEDULE_ENABLED: bool = Field(default=False)
    PROMPT_RUN_SCHEDULE_HOUR_UTC: int = Field(default=6)

    # Aggregation
    PROMPT_RUN_WINDOW_DAYS: int = Field(
        default=7, description="Default analytics window in days"
    )

    @field_validator("PROMPT_RUN_CONCURRENCY", "PROMPT_RUN_MAX_CONCURRENCY")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1 or v > 200:
            raise ValueError("Concurrency must be between 1 and 200")
        return v

    @field_validator("PROMPT_RUN_SCHEDULE_HOUR_UTC")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        if v < 0 or v > 23:
            raise ValueError("Schedule hour must be between 0 and 23")
        return v

    def resolve_concurrency(self, requested: int | None) -> int:
        """Clamp a requested pool width into the configured bounds."""
        if requested is None:
            return self.PROMPT_RUN_CONCURRENCY
        return max(1, min(int(requested), self.PROMPT_RUN_MAX_CONCURRENCY))

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache
def get_run_settings() -> PromptRunSettings:
    """Get the process-wide prompt-run settings instance"""
    return PromptRunSettings()


def update_run_settings(**kwargs: Any) -> None:
    """Update prompt-run settings at runtime (for testing)"""
    current = get_run_settings()
    for key, value in kwargs.items():
        if hasattr(current, key):
            setattr(current, key, value)
        else:
            raise ValueError(f"Unknown prompt-run setting: {key}")
