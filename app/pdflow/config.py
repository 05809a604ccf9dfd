"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str | None = None
    openai_model: str = "gpt-4.1"
    extraction_timeout: float = 120.0

    # Session storage roots
    uploads_dir: Path = Path("./uploads")
    outputs_dir: Path = Path("./outputs")

    # Upload / rasterization
    max_upload_bytes: int = 500 * 1024 * 1024
    conversion_script: Path | None = None
    conversion_timeout: float = 30.0
    rasterize_dpi: int = 150

    # Progress tracking
    progress_backend: Literal["memory", "database"] = "memory"
    database_url: str = "sqlite:///./pdflow.db"

    # Debug flags
    sql_debug: bool = False
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the package directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
