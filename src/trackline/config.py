"""
trackline - Configuration and settings.

Settings are read from the environment (and an optional .env file).
Nothing here is required: every field has a default so the encoder and
registry work out of the box in tests and one-off CLI runs.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the registry, encoder, and CLI."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    trackline_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Registry
    # DEFAULT_TEAM: team key (or UUID) whose workflow states get clean s0, s1 keys
    default_team: str | None = None
    transport: Literal["stdio", "http"] = "stdio"
    registry_ttl_seconds: int = 30 * 60

    # Encoder truncation limits (characters)
    title_max_length: int = 500
    desc_max_length: int = 3000

    # Local user profile enrichment (role/skills by email)
    user_profiles_path: str = "./team-profiles.json"
    user_profiles_json: str | None = None

    @property
    def is_development(self) -> bool:
        return self.trackline_env == "development"

    @property
    def is_production(self) -> bool:
        return self.trackline_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance."""
    return Settings()


class _SettingsProxy:
    """Lazy proxy so importing this module never reads the environment."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()
