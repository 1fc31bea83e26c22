"""
Configuration Package for svcwatch

This package contains all configuration-related modules including:
- Settings management with environment variable support
- Constants and enums used throughout the application
"""

from svcwatch.config.settings import (
    Settings,
    MonitorSettings,
    LoggingSettings,
    ServerSettings,
    ServiceEntry,
    Environment,
    LogLevel,
    get_settings,
)

from svcwatch.config.constants import (
    Protocol,
    SchedulerState,
    ConfigErrorKind,
    ProbeFailureKind,
    ReportFormat,
    Defaults,
    UNKNOWN_LATENCY_MS,
)

__all__ = [
    # Settings
    "Settings",
    "MonitorSettings",
    "LoggingSettings",
    "ServerSettings",
    "ServiceEntry",
    "Environment",
    "LogLevel",
    "get_settings",

    # Constants
    "Protocol",
    "SchedulerState",
    "ConfigErrorKind",
    "ProbeFailureKind",
    "ReportFormat",
    "Defaults",
    "UNKNOWN_LATENCY_MS",
]
