# src/config/settings.py
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for runtime tunables: pipeline concurrency,
compression level, cooperative-yield cadence, size warnings and logging.
Environment variables use the EPUBZIP_ prefix (e.g. EPUBZIP_MAX_CONCURRENT_JOBS).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ARCHIVE_NAME = "epub_converted_files.zip"


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EPUBZIP_",
        extra="ignore",
    )

    # === Pipeline ===
    max_concurrent_jobs: int = 3
    compression_level: int = 6
    aggregate_archive_name: str = DEFAULT_ARCHIVE_NAME

    # === Cooperative yields ===
    yield_every_images: int = 10
    batch_yield_ms: int = 50

    # === Size warnings (informational only, never blocking) ===
    large_image_warning_mb: int = 50
    large_file_warning_mb: int = 500

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("compression_level")
    @classmethod
    def validate_compression_level(cls, v: int) -> int:
        if not 0 <= v <= 9:
            raise ValueError("compression_level must be between 0 and 9")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.max_concurrent_jobs <= 0:
            errors.append("MAX_CONCURRENT_JOBS must be > 0")

        if self.yield_every_images <= 0:
            errors.append("YIELD_EVERY_IMAGES must be > 0")

        if self.batch_yield_ms < 0:
            errors.append("BATCH_YIELD_MS must be >= 0")

        if self.large_image_warning_mb <= 0 or self.large_file_warning_mb <= 0:
            errors.append("size warning thresholds must be > 0")

        if not self.aggregate_archive_name.lower().endswith(".zip"):
            errors.append("AGGREGATE_ARCHIVE_NAME must end with .zip")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def large_image_warning_bytes(self) -> int:
        return self.large_image_warning_mb * 1024 * 1024

    @property
    def large_file_warning_bytes(self) -> int:
        return self.large_file_warning_mb * 1024 * 1024

    @property
    def batch_yield_seconds(self) -> float:
        return self.batch_yield_ms / 1000


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
