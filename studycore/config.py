"""
Centralized configuration management for the studycore application.
"""
from pathlib import Path
import uuid

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_QUEUE_LIMIT


def get_default_db_path() -> Path:
    """Returns the default path for the database file."""
    return Path.home() / ".studycore" / "study.db"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from STUDYCORE_* environment
    variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDYCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Core Paths ---
    # Overridden by STUDYCORE_DB_PATH. The CLI also accepts --db / STUDYCORE_DB.
    db_path: Path = Field(default_factory=get_default_db_path)

    # --- User Configuration ---
    # Owner of the decks and cards handled by the CLI (STUDYCORE_USER_ID).
    user_id: uuid.UUID = uuid.UUID("00000000-0000-0000-0000-000000000001")

    # --- Study Queue ---
    queue_limit: int = Field(default=DEFAULT_QUEUE_LIMIT, ge=1)

    # --- Testing Configuration ---
    # When True, disables safety checks that prevent data loss during tests.
    # Should NEVER be enabled in production. Set via STUDYCORE_TESTING_MODE.
    testing_mode: bool = False


# Create a singleton instance of the settings
settings = Settings()
