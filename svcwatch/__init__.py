"""
svcwatch

In-process uptime and latency monitoring for HTTP, TCP, TLS, SMTP and
DNS services.
"""

from svcwatch.config.constants import Protocol, ReportFormat, SchedulerState
from svcwatch.exceptions import (
    AlreadyRunningError,
    ConfigError,
    DuplicateNameError,
    InvalidAddressError,
    InvalidIntervalError,
    InvalidOptionError,
    ListenerFailure,
    ProbeFailure,
    SvcWatchException,
)
from svcwatch.monitoring import (
    LoggingListener,
    Monitor,
    Outcome,
    Probe,
    RoundSummary,
    ServiceDefinition,
    ServiceStatusView,
    average_latency_ms,
    uptime_percentage,
)

__version__ = "1.0.0"

__all__ = [
    "Monitor",
    "Protocol",
    "ReportFormat",
    "SchedulerState",
    "Outcome",
    "Probe",
    "RoundSummary",
    "ServiceDefinition",
    "ServiceStatusView",
    "LoggingListener",
    "uptime_percentage",
    "average_latency_ms",
    "SvcWatchException",
    "ConfigError",
    "DuplicateNameError",
    "InvalidAddressError",
    "InvalidIntervalError",
    "AlreadyRunningError",
    "InvalidOptionError",
    "ProbeFailure",
    "ListenerFailure",
]
