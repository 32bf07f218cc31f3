"""
Configuration for EntDoc.

Uses pydantic-settings for environment variable loading.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Entity model configuration loaded from environment."""

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="text", description="Log format: text or json")

    # Behaviour toggles
    strict_paths: bool = Field(
        default=False,
        description="Raise PathError when a nested assignment is blocked by a scalar",
    )
    validate_increments: bool = Field(
        default=False,
        description="Check that a field is numeric before recording its increment",
    )

    model_config = {"env_prefix": "ENTDOC_"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings, loaded once from the environment."""
    return Settings()
