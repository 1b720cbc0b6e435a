"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FoundrySettings(BaseSettings):
    """FoundryVTT server connection configuration."""

    url: str = Field(default="", description="Base URL of the FoundryVTT server")
    username: str = Field(default="", description="Display name of the user to join as")
    user_id: str = Field(
        default="",
        description="Document _id of the user to join as. Skips the name lookup when set.",
    )
    password: str = Field(default="", description="Password for the joining user")
    api_key: str = Field(
        default="",
        description="API key for the REST API module. When set, connect() only "
                    "checks reachability and no world snapshot is loaded.",
    )
    timeout: float = Field(default=10.0, gt=0, description="HTTP request timeout in seconds")
    retry_attempts: int = Field(default=3, ge=0, description="Retries after the first HTTP attempt")
    retry_delay: float = Field(default=1.0, ge=0, description="Base retry delay in seconds")
    socket_path: str = Field(default="/socket.io/", description="Socket.IO endpoint path")
    join_timeout: float = Field(
        default=10.0, gt=0, description="Seconds to wait for join data during user lookup"
    )
    world_timeout: float = Field(
        default=15.0, gt=0, description="Seconds to wait for the world payload"
    )
    user_id_pattern: str = Field(
        default=r"^[a-zA-Z0-9]{16}$",
        description="Regex for values that are already a user document _id",
    )

    model_config = SettingsConfigDict(env_prefix="FOUNDRY_")


class SearchSettings(BaseSettings):
    """Result size limits for world queries."""

    default_limit: int = Field(default=10, gt=0, description="Results returned when no limit is given")
    max_limit: int = Field(default=50, gt=0, description="Upper bound on any requested limit")
    chat_limit: int = Field(default=20, gt=0, description="Default number of recent chat messages")

    model_config = SettingsConfigDict(env_prefix="SEARCH_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    foundry: FoundrySettings = Field(default_factory=FoundrySettings)
    search: SearchSettings = Field(default_factory=SearchSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    if env_file:
        return Settings(_env_file=env_file)
    return Settings()
