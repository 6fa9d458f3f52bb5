"""Configuration management with Pydantic and XDG base directory support."""

import logging
import os
import sys
from pathlib import Path
from typing import Literal

from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_data_home() -> Path:
    """Get XDG_DATA_HOME directory, defaulting to ~/.local/share."""
    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


EmbedderBackend = Literal["hashing"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_PRECACHE_PATH = Path(".idiomindex") / "precache.yaml"


class Settings(BaseSettings):
    """idiomindex configuration settings.

    Precedence: CLI flag > environment variable > .env file > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="IDIOMINDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Data directory
    data_dir: Path | None = Field(
        default=None,
        description="Override data directory (defaults to XDG_DATA_HOME/idiomindex)",
    )

    # Embedding settings
    embedding_model: str = Field(
        default="hashing-256",
        description="Default embedding model for indexes and prefetch",
    )

    embedder_backend: EmbedderBackend = Field(
        default="hashing",
        description="Embedder adapter wired by the application container",
    )

    hashing_dimensions: int = Field(
        default=256,
        ge=2,
        description="Vector dimensions produced by the hashing embedder",
    )

    # Persistence
    inventory_path: Path | None = Field(
        default=None,
        description="Inventory file (defaults to <data_dir>/inventory.yaml)",
    )

    precache_path: Path | None = Field(
        default=None,
        description="Precache file (defaults to .idiomindex/precache.yaml)",
    )

    # Query settings
    history_penalty: float = Field(
        default=0.1,
        ge=0.0,
        description="Distance penalty rate applied per prompt turn of age",
    )

    index_limit: int | None = Field(
        default=None,
        ge=0,
        description="Default maximum number of results per query (unbounded when unset)",
    )

    query_hysteresis: int = Field(
        default=5,
        ge=1,
        description="Number of recent query vectors kept per context",
    )

    query_decay: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Weight decay applied to older query vectors",
    )

    log_level: LogLevel = Field(
        default="WARNING",
        description="Root log level configured by the CLI",
    )

    _resolved_data_dir: Path | None = PrivateAttr(default=None)
    _data_dir_warning_emitted: bool = PrivateAttr(default=False)

    def get_data_dir(self) -> Path:
        """Get the data directory, creating if necessary."""
        if self._resolved_data_dir is not None:
            return self._resolved_data_dir

        if self.data_dir:
            data_dir = self.data_dir
            data_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = data_dir
            return data_dir

        primary_dir = get_xdg_data_home() / "idiomindex"
        try:
            primary_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = primary_dir
            return primary_dir
        except PermissionError as exc:
            fallback = Path.cwd() / ".idiomindex-data"
            fallback.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = fallback
            if not self._data_dir_warning_emitted:
                print(
                    f"Warning: cannot create data directory at {primary_dir} ({exc}). "
                    f"Using local '{fallback}' instead. Pass --data-dir to override.",
                    file=sys.stderr,
                )
                self._data_dir_warning_emitted = True
            return fallback

    def get_inventory_path(self) -> Path:
        """Get path to the default inventory file."""
        if self.inventory_path is not None:
            return self.inventory_path
        return self.get_data_dir() / "inventory.yaml"

    def get_precache_path(self) -> Path:
        """Get path to the precache file, relative to the working directory by default."""
        if self.precache_path is not None:
            return self.precache_path
        return DEFAULT_PRECACHE_PATH

    def get_log_level(self) -> int:
        return logging.getLevelName(self.log_level)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings | None) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
