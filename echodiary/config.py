"""
Application configuration and logging setup.

Settings come from environment variables, optionally loaded from
``config/.env`` and ``.env`` files, and are resolved once per command.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console
from rich.logging import RichHandler

DEFAULT_STORAGE_PATH = "./data/diaries.json"
DEFAULT_IMAGE_DIR = "./data/images"
DEFAULT_AUDIO_DIR = "./data/audio"
DEFAULT_IMAGE_MODEL = "gemini-3-pro-image-preview"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_LANGUAGE = "ja"

# Later files win; variables set in the real environment win over both
ENV_FILES = (Path("config") / ".env", Path(".env"))


class Settings(BaseSettings):
    """Resolved runtime settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILES,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    # API keys
    openai_api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    gemini_api_key: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")

    # Local files
    storage_path: Path = Field(default=Path(DEFAULT_STORAGE_PATH), validation_alias="DIARY_STORAGE_PATH")
    image_dir: Path = Field(default=Path(DEFAULT_IMAGE_DIR), validation_alias="DIARY_IMAGE_DIR")
    audio_dir: Path = Field(default=Path(DEFAULT_AUDIO_DIR), validation_alias="DIARY_AUDIO_DIR")

    # Models
    image_model: str = Field(default=DEFAULT_IMAGE_MODEL, validation_alias="GEMINI_IMAGE_MODEL")
    transcription_model: str = Field(default=DEFAULT_TRANSCRIPTION_MODEL, validation_alias="WHISPER_MODEL")
    language: str = Field(default=DEFAULT_LANGUAGE, validation_alias="DIARY_LANGUAGE")


def load_settings(load_env_files: bool = True) -> Settings:
    """
    Build settings from the environment.

    Args:
        load_env_files: Also read ``config/.env`` and ``.env``. Variables
            already present in the environment are never overridden.

    Returns:
        A frozen Settings instance with every default applied.
    """
    if load_env_files:
        return Settings()
    return Settings(_env_file=None)


def configure_logging(verbose: bool = False) -> None:
    """Route package logs through rich on stderr."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger("echodiary")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
