import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    env: str = Field(default="dev", description="Deployment environment")
    database_url: str = Field(
        default="sqlite:///timekeeping.db",
        description="Database connection string for the entry and settings stores",
    )
    log_level: str = "INFO"
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN for error monitoring")
    otlp_endpoint: str | None = Field(default=None, description="OTLP endpoint for metrics")
    monthly_target_hours: float = Field(default=170.0, description="Hours that mark a month as complete")
    coordinator_auto_approve: bool = Field(
        default=True, description="Coordinators recording their own hours are approved on entry"
    )

    model_config = SettingsConfigDict(env_prefix="TIMEKEEPING_", extra="ignore")

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        return value.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=get_settings_env_file())


def get_settings_env_file() -> str | None:
    """Resolve environment-specific env file if it exists."""
    env = os.getenv("TIMEKEEPING_ENV", "dev")
    env_file = BASE_DIR / f".env.{env}"
    default_file = BASE_DIR / ".env"
    if env_file.exists():
        return str(env_file)
    if default_file.exists():
        return str(default_file)
    return None
