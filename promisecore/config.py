"""Library settings with Pydantic."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """promisecore configuration, read from ``PROMISECORE_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROMISECORE_",
        extra="ignore",
    )

    # Unhandled rejections
    unhandled_rejections: Literal["warn", "ignore"] = "warn"

    # Logging
    log_level: str = "WARNING"
    log_format: Literal["console", "json"] = "console"

    # EventLoop host
    event_loop_max_iterations: int = 10000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
