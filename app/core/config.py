"""
App Configuration.

This module defines the global application settings using Pydantic Settings.
It loads configuration variables from environment variables and/or a .env file,
ensuring typed and validated settings for the application.

Attributes:
    settings: The global instance of the Settings class, ready to be imported and used.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application Settings.

    Attributes:
        PROJECT_NAME: The name of the project.
        GITLAB_API_URL: Base URL of the GitLab REST API (v4).
        GITLAB_TIMEOUT_SECONDS: Transport timeout for every GitLab call.
        PROJECT_CACHE_TTL_SECONDS: Lifetime of the cached first page of projects.
        PRECHECK_MAX_CONCURRENCY: Upper bound on simultaneous open-MR lookups.
        DEFAULT_TARGET_BRANCH: Target used when a per-project map has no entry.
        STATE_FILE: Optional JSON file backing the persistent storage area.
        VALKEY_URL: Optional Valkey URL backing the persistent storage area.
    """

    # Core
    PROJECT_NAME: str = "Release MR Orchestrator"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3010
    CORS_ORIGINS: List[str] = ["*"]

    # GitLab
    GITLAB_API_URL: str = "https://gitlab.com/api/v4"
    GITLAB_TIMEOUT_SECONDS: float = 30.0

    # Merge request workflow
    PRECHECK_MAX_CONCURRENCY: int = 10
    DEFAULT_TARGET_BRANCH: str = "main"

    # Local state
    PROJECT_CACHE_TTL_SECONDS: float = 24 * 60 * 60
    STATE_FILE: Optional[str] = None
    VALKEY_URL: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env", env_ignore_empty=True, extra="ignore"
    )


settings = Settings()
