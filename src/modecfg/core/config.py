"""
Configuration management for modecfg.

Uses pydantic-settings for environment variable binding.
All settings can be overridden via environment variables with MODECFG_ prefix.
"""

import logging
import sys
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SCHEMA_FILENAME = "custom-mode-schema.json"
DEFAULT_SCHEMA_URL = (
    "https://raw.githubusercontent.com/RooVetGit/Roo-Code/refs/heads/main/" + SCHEMA_FILENAME
)


class Settings(BaseSettings):
    """Application settings with environment variable binding."""

    model_config = SettingsConfigDict(
        env_prefix="MODECFG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================
    # Storage Roots
    # ==========================================
    global_root: Path = Path.home() / ".modecfg"
    """Installation-wide storage root."""

    project_root: Path = Field(default_factory=Path.cwd)
    """Root of the current project (repository)."""

    # ==========================================
    # Layout
    # ==========================================
    global_modes_dirname: str = "modes"
    """Split-format directory under the global root."""

    project_modes_dir: Path = Path(".roo") / "modes"
    """Split-format directory relative to the project root."""

    legacy_filename: str = ".roomodes"
    """Aggregate file name, one per scope root."""

    split_extensions: tuple[str, ...] = (".yaml", ".yml")
    """Accepted split-file extensions. The first one is used for new files."""

    recursive_split_dirs: bool = False
    """Descend into subdirectories when enumerating split-format files."""

    schema_url: str = DEFAULT_SCHEMA_URL
    """Schema referenced by the annotation line of split-format files."""

    # ==========================================
    # Cache & Write Coordination
    # ==========================================
    cache_ttl_seconds: float = 10.0
    """Upper bound on staleness when change notifications are missed."""

    suppression_grace_seconds: float = 1.0
    """How long a finished write keeps ignoring its own file events."""

    suppression_max_hold_seconds: float = 30.0
    """Auto-clear deadline for a lock whose write never released it."""

    auto_migrate: bool = False
    """Migrate the project's legacy file before the first read."""

    # ==========================================
    # Logging
    # ==========================================
    log_level: str = "INFO"
    log_file: Path | None = None

    @field_validator("split_extensions")
    @classmethod
    def _normalize_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("at least one split-file extension is required")
        return tuple(ext if ext.startswith(".") else f".{ext}" for ext in value)

    @field_validator("suppression_grace_seconds")
    @classmethod
    def _bound_grace(cls, value: float) -> float:
        if not 0.5 <= value <= 5.0:
            raise ValueError("suppression grace must be between 0.5 and 5 seconds")
        return value

    @field_validator("cache_ttl_seconds", "suppression_max_hold_seconds")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    # ==========================================
    # Computed Properties
    # ==========================================
    @property
    def primary_extension(self) -> str:
        return self.split_extensions[0]

    @property
    def global_split_dir(self) -> Path:
        return self.global_root / self.global_modes_dirname

    @property
    def global_legacy_path(self) -> Path:
        return self.global_root / self.legacy_filename

    @property
    def project_split_dir(self) -> Path:
        return self.project_root / self.project_modes_dir

    @property
    def project_legacy_path(self) -> Path:
        return self.project_root / self.legacy_filename


# Global settings instance
settings = Settings()


def setup_logging(level: str | None = None) -> None:
    """Configure application logging."""
    log_level = level or settings.log_level

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
    ]

    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        handlers=handlers,
    )

    # Quiet noisy libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(f"modecfg.{name}")
