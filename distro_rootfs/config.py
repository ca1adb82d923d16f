"""Configuration settings for distro_rootfs.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from distro_rootfs.sources.mirrors import DEFAULT_MIRROR, Mirror
from distro_rootfs.types import Source


def _default_cache_dir() -> Path:
    """Return the default rootfs cache directory.

    Follows the XDG base directory spec: ``$XDG_DATA_HOME/distro-rootfs/rootfs``,
    falling back to ``~/.local/share/distro-rootfs/rootfs``.
    """
    data_home = os.environ.get("XDG_DATA_HOME")
    base = Path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / "distro-rootfs" / "rootfs"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the DISTRO_ROOTFS_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="DISTRO_ROOTFS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Root directory for the rootfs cache",
    )

    # Sources
    mirror: str = Field(
        default=DEFAULT_MIRROR,
        description="LXC Images mirror: preset name or http(s) base URL",
    )
    source: Source = Field(
        default=Source.INDEX,
        description="Where to resolve rootfs archives from (index or official)",
    )

    # Operational modes
    offline: bool = Field(
        default=False,
        description="Offline mode - only serve rootfs archives already cached",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Retention
    keep_latest: int = Field(
        default=2,
        ge=0,
        description="Entries kept per distro when pruning",
    )

    # Timeouts (in seconds)
    download_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for rootfs downloads",
    )
    index_timeout: int = Field(
        default=30,
        ge=1,
        description="Timeout for image index and checksum requests",
    )
    lock_timeout: float | None = Field(
        default=None,
        description="Timeout waiting for another download of the same rootfs "
        "(blocks indefinitely if not set)",
    )

    @field_validator("mirror")
    @classmethod
    def validate_mirror(cls, v: str) -> str:
        """Validate mirror is a preset name or an http(s) URL."""
        Mirror.parse(v)
        return v

    def get_mirror(self) -> Mirror:
        """Return the configured mirror."""
        return Mirror.parse(self.mirror)


def get_settings() -> Settings:
    """Get the application settings singleton.

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
