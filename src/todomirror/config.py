"""Configuration management for todomirror."""

import sys
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """todomirror configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    todomirror_root: Path = Field(
        default_factory=Path.cwd,
        description="Root directory holding the .todomirror data directory",
    )
    sync_folder: Path | None = Field(
        default=None,
        description="Folder to mirror categories into (one .md file per category)",
    )

    # Sync timing
    poll_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between checks of the sync folder",
    )
    write_debounce_ms: int = Field(
        default=500,
        gt=0,
        description="Milliseconds to wait after the last change before writing files",
    )
    resolve_new_parents: bool = Field(
        default=True,
        description="Nest tasks created from a file under their parent line",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("todomirror_root", mode="before")
    @classmethod
    def resolve_root(cls, v: str | Path) -> Path:
        """Resolve and validate root path."""
        return Path(v).expanduser().resolve()

    @field_validator("sync_folder", mode="before")
    @classmethod
    def resolve_sync_folder(cls, v: str | Path | None) -> Path | None:
        """Treat an empty value as unset."""
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @property
    def write_debounce(self) -> float:
        """Write debounce in seconds."""
        return self.write_debounce_ms / 1000

    @property
    def data_dir(self) -> Path:
        """Path to .todomirror directory."""
        return self.todomirror_root / ".todomirror"

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "todos.db"

    def ensure_dirs(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


def load_settings(root: Path | None = None) -> Settings:
    """Load settings from environment and .env file.

    Args:
        root: Optional root directory override.

    Returns:
        Validated Settings instance.

    Raises:
        SystemExit: If settings are invalid.
    """
    env_file = None
    if root:
        env_file = root / ".env"
        if not env_file.exists():
            env_file = root / ".todomirror" / ".env"
            if not env_file.exists():
                env_file = None

    try:
        if env_file:
            # _env_file is a valid pydantic-settings parameter
            return Settings(_env_file=env_file, todomirror_root=root)  # type: ignore[call-arg]
        if root:
            return Settings(todomirror_root=root)
        return Settings()

    except Exception as e:
        _print_config_help(e)
        sys.exit(1)


def _print_config_help(error: Exception) -> None:
    """Print helpful message for invalid configuration."""
    print("\n" + "=" * 60)
    print("todomirror Configuration Error")
    print("=" * 60 + "\n")

    print("Example .env file:")
    print("-" * 40)
    print("SYNC_FOLDER=~/Notes/todos")
    print("POLL_INTERVAL=5")
    print("WRITE_DEBOUNCE_MS=500")
    print("RESOLVE_NEW_PARENTS=true")
    print("LOG_LEVEL=INFO")
    print("-" * 40)
    print()

    # Print the actual validation error for debugging
    print(f"Validation error: {error}")
    print()
