"""
Settings Module for svcwatch

Configuration management using Pydantic Settings.
Supports environment variables, .env files, and runtime overrides.
Every section validates its own values so a bad environment fails
at startup instead of in the middle of a check round.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from svcwatch.config.constants import Defaults, Protocol


class Environment(str, Enum):
    """Application environment enumeration."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BaseSettingsConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True
    )


class ServiceEntry(BaseModel):
    """One service to register at startup."""

    name: str = Field(min_length=1, max_length=128)
    protocol: Protocol
    address: str = Field(min_length=1, max_length=2048)

    @field_validator("protocol", mode="before")
    @classmethod
    def parse_protocol(cls, v: Any) -> Protocol:
        """Accept protocol names in any case, and HTTPS as HTTP."""
        return Protocol.parse(v)


class MonitorSettings(BaseSettingsConfig):
    """
    Monitoring Engine Configuration Settings

    Controls the round interval, the per-check timeout, history
    capacity, and worker concurrency of the checker pool.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_",
        env_file=".env",
        extra="ignore"
    )

    # Round scheduling
    check_interval_seconds: float = Field(
        default=Defaults.CHECK_INTERVAL_SECONDS,
        gt=0,
        le=86400,
        description="Seconds between check rounds"
    )
    stop_grace_seconds: float = Field(
        default=Defaults.STOP_GRACE_SECONDS,
        ge=0,
        le=300,
        description="How long stop() waits for the in-flight round"
    )

    # Per-check limits
    per_check_timeout_ms: int = Field(
        default=Defaults.PER_CHECK_TIMEOUT_MS,
        ge=1,
        le=600_000,
        description="Ceiling for a single probe, in milliseconds"
    )
    round_grace_ms: int = Field(
        default=Defaults.ROUND_GRACE_MS,
        ge=0,
        le=60_000,
        description="Extra time a probe gets before it is abandoned"
    )

    # History and concurrency
    history_size: int = Field(
        default=Defaults.HISTORY_SIZE,
        ge=1,
        le=100_000,
        description="History ring capacity per service"
    )
    pool_size: int = Field(
        default=Defaults.POOL_SIZE,
        ge=1,
        le=1000,
        description="Maximum concurrent checks per round"
    )

    # Probe behaviour
    tls_verify: bool = Field(
        default=True,
        description="Verify certificates in TLS and HTTPS probes"
    )
    tls_ca_file: Optional[Path] = Field(
        default=None,
        description="PEM bundle trusted by TLS probes instead of the system store"
    )
    user_agent: str = Field(
        default=Defaults.USER_AGENT,
        description="User agent string for HTTP probes"
    )

    # Services registered by the entry point
    services: List[ServiceEntry] = Field(
        default_factory=list,
        description="Services to register at startup (JSON list)"
    )
    services_file: Optional[Path] = Field(
        default=None,
        description="JSON file with additional services to register"
    )

    @property
    def per_check_timeout(self) -> float:
        """Per-check timeout in seconds."""
        return self.per_check_timeout_ms / 1000.0

    @property
    def round_grace(self) -> float:
        """Abandonment grace in seconds."""
        return self.round_grace_ms / 1000.0


class LoggingSettings(BaseSettingsConfig):
    """
    Logging Configuration Settings

    Console and rotating-file sinks for loguru.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore"
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Minimum logging level"
    )

    # Console logging
    console_enabled: bool = Field(
        default=True,
        description="Enable console logging"
    )
    colorize: bool = Field(
        default=True,
        description="Enable colored console output"
    )

    # File logging
    file_enabled: bool = Field(
        default=False,
        description="Enable file logging"
    )
    file_path: Path = Field(
        default=Path("logs/svcwatch.log"),
        description="Log file path"
    )
    file_rotation: str = Field(
        default="10 MB",
        description="Log rotation size (e.g., '10 MB', '1 day')"
    )
    file_retention: str = Field(
        default="30 days",
        description="Log retention period"
    )
    json_enabled: bool = Field(
        default=False,
        description="Serialize file log records as JSON"
    )


class ServerSettings(BaseSettingsConfig):
    """
    Status Server Configuration Settings

    The optional aiohttp server exposing /health, /status and /report.
    """

    model_config = SettingsConfigDict(
        env_prefix="SERVER_",
        env_file=".env",
        extra="ignore"
    )

    enabled: bool = Field(
        default=False,
        description="Start the status server with the monitor"
    )
    host: str = Field(
        default="127.0.0.1",
        description="Bind address"
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Bind port"
    )


class Settings(BaseSettingsConfig):
    """
    Main Settings Class

    Aggregates all settings sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment"
    )
    app_name: str = Field(
        default="svcwatch",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )

    # Nested settings
    monitor: MonitorSettings = Field(
        default_factory=MonitorSettings
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings
    )
    server: ServerSettings = Field(
        default_factory=ServerSettings
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @model_validator(mode="after")
    def configure_for_environment(self) -> "Settings":
        """Apply environment-specific configuration."""
        if self.is_production:
            self.logging.colorize = False
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to a JSON-friendly dictionary."""
        return self.model_dump(mode="json")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached so a single settings instance is used
    throughout the process lifetime. Tests that change the environment
    call ``get_settings.cache_clear()``.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
