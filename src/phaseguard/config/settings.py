"""
phaseguard configuration settings using Pydantic.

This module provides type-safe configuration management with validation,
environment variable support, and nested configuration structures.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreConfig(BaseModel):
    """Session registry location."""

    base_dir: Path = Field(
        default=Path("."),
        description="Directory holding the session registry document",
    )
    filename: str = Field(
        default=".phaseguard-store.json",
        description="File name of the session registry document",
    )


class OutputConfig(BaseModel):
    """Per-session output layout."""

    base_dir: Path = Field(
        default=Path("./audit-logs"),
        description="Default parent directory for per-session output",
    )
    deliverables_subdir: str = Field(
        default="deliverables",
        description="Subdirectory of a work directory holding phase artifacts",
    )
    session_filename: str = Field(
        default="session.json",
        description="File name of the per-session metrics document",
    )
    error_log_name: str = Field(
        default="error.log",
        description="File name of the human-readable error log",
    )


class ErrorRecoveryConfig(BaseModel):
    """Retry and backoff configuration."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts per agent before it is marked failed",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.5,
        le=5.0,
        description="Exponential backoff multiplier for retries",
    )
    base_backoff_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=30.0,
        description="Delay before the first retry of a transient failure",
    )
    rate_limit_base_seconds: float = Field(
        default=30.0,
        ge=30.0,
        le=600.0,
        description="Delay before the first retry of a rate-limited call",
    )
    max_backoff_seconds: float = Field(
        default=60.0,
        ge=5.0,
        le=300.0,
        description="Upper bound for transient (non rate-limit) backoff",
    )
    jitter_ratio: float = Field(
        default=0.0,
        ge=0.0,
        le=0.25,
        description="Random jitter added to delays, as a fraction of the delay",
    )

    @model_validator(mode="after")
    def check_backoff_bounds(self) -> "ErrorRecoveryConfig":
        if self.base_backoff_seconds > self.max_backoff_seconds:
            raise ValueError("base_backoff_seconds must not exceed max_backoff_seconds")
        return self


class MonitorConfig(BaseModel):
    """Monitor CLI defaults."""

    interval_ms: int = Field(
        default=1500,
        ge=250,
        description="Polling interval for follow mode in milliseconds",
    )
    clear_screen: bool = Field(
        default=True,
        description="Clear the terminal between follow-mode renders",
    )


class PhaseguardSettings(BaseSettings):
    """
    Main phaseguard configuration.

    Settings are loaded from environment variables with the PHASEGUARD_ prefix,
    or from a .env file in the current directory. Nested values use a double
    underscore, e.g. PHASEGUARD_ERROR_RECOVERY__MAX_ATTEMPTS=5.
    """

    model_config = SettingsConfigDict(
        env_prefix="PHASEGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    store: StoreConfig = Field(default_factory=StoreConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    error_recovery: ErrorRecoveryConfig = Field(default_factory=ErrorRecoveryConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    def get_store_path(self, base_dir: Path | str | None = None) -> Path:
        """Get the registry document path, optionally under an explicit directory."""
        root = Path(base_dir) if base_dir is not None else self.store.base_dir
        return root / self.store.filename


_settings: PhaseguardSettings | None = None


def get_settings() -> PhaseguardSettings:
    """Get the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = PhaseguardSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
