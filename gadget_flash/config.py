"""Configuration settings for gadget_flash.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_identity_file() -> Path:
    """Return the default private key used to log in to the board."""
    return Path.home() / ".ssh" / "gadget_default_rsa"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the GADGET_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="GADGET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection
    host: str = Field(
        default="192.168.81.1",
        description="Address of the board on the USB network link",
    )
    user: str = Field(default="root", description="Login user on the board")
    port: int = Field(default=22, ge=1, le=65535, description="ssh port")
    identity_file: Path | None = Field(
        default_factory=_default_identity_file,
        description="Private key for ssh (None lets ssh pick its defaults)",
    )
    ssh_binary: str = Field(default="ssh", description="ssh client executable")
    connect_timeout: int = Field(
        default=5,
        ge=1,
        le=300,
        description="ssh ConnectTimeout in seconds",
    )
    strict_host_key_checking: bool = Field(
        default=False,
        description="Verify the board host key (boards regenerate keys on reflash)",
    )

    # Transfer
    block_size: int = Field(
        default=1024 * 1024,
        ge=4096,
        le=64 * 1024 * 1024,
        description="Chunk size for hashing and streaming artifacts",
    )

    # Timeouts (in seconds)
    transfer_timeout: int = Field(
        default=1800,
        ge=60,
        description="Timeout waiting for update_volume to finish after upload",
    )
    command_timeout: int = Field(
        default=120,
        ge=5,
        description="Timeout for toggle_active_slot, sync and reboot",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
