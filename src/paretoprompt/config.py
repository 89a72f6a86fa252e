"""Environment-driven optimizer defaults."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Optimizer defaults from environment (GEPA_*) or direct initialization."""

    generations: int = Field(default=10, ge=1)
    population_size: int = Field(default=8, ge=1)
    mutation_count: int = Field(default=3, ge=0)
    crossover_rate: float = Field(default=0.2, ge=0.0, le=1.0)
    task_timeout_ms: int = Field(default=30_000, ge=1)
    parallel: bool = False
    show_progress: bool = False

    model_config = SettingsConfigDict(
        env_prefix="GEPA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


def get_settings() -> Settings:
    """Load settings from environment."""
    return Settings()
