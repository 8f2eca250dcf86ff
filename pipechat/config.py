"""Configuration management for pipechat."""

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT


def get_config_dir() -> Path:
    """Get the configuration directory."""
    if os.name == "nt":  # Windows
        return Path(os.environ.get("APPDATA", "~")).expanduser() / "pipechat"
    return Path.home() / ".config" / "pipechat"


def get_env_file_path() -> Path:
    """Get the path to the env file."""
    return get_config_dir() / ".env"


class Config(BaseSettings):
    """pipechat configuration.

    Read from ``PIPECHAT_*`` environment variables and the optional env file.
    The credential and endpoint also honour the OpenAI variable names.
    """

    model_config = SettingsConfigDict(
        env_prefix="PIPECHAT_",
        env_file=str(get_env_file_path()),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # API Configuration
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("PIPECHAT_API_KEY", "OPENAI_API_KEY"),
        description="API key",
        repr=False,
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        validation_alias=AliasChoices("PIPECHAT_BASE_URL", "OPENAI_API_ENDPOINT"),
        description="API base URL",
    )
    model: str = Field(default="gpt-4o-mini", description="Model to use")

    # Behavior
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="Request timeout in seconds")

    # Diagnostics
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="WARNING")


def get_config(**overrides) -> Config:
    """Load configuration for this invocation."""
    return Config(**overrides)
