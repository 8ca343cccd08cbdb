"""Application configuration via pydantic-settings.

Loads all settings from environment variables (or .env file).
See .env.example for documented variable names and defaults.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from linkhop.core.events import WebhookConfig

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration for the linkhop service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- GitHub ---
    github_repository: str = ""
    github_branch: str = "master"
    github_webhook_secret: str = ""

    # --- Alias source ---
    alias_file_name: str = "aliases.json"
    alias_source_url: str = ""
    alias_source_timeout: float = 10.0

    # --- Snapshot cache ---
    alias_cache_file: str = "./cache/aliases.json"

    # --- Application ---
    log_level: str = "INFO"
    admin_secret: str = ""

    @property
    def webhook_config(self) -> WebhookConfig:
        """The repository/branch/secret triple the webhook handler checks against."""
        return WebhookConfig(
            repository=self.github_repository,
            branch=self.github_branch,
            secret=self.github_webhook_secret,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton."""
    return Settings()
