"""
Constants Module for svcwatch

Contains the enumerations and static defaults shared by the
monitoring engine, the reports and the status server.
"""

from __future__ import annotations

from enum import Enum
from typing import Final


class Protocol(str, Enum):
    """
    Protocol Enumeration

    One value per probe variant. Adding a protocol means adding a value
    here and a Probe implementation, nothing else.
    """

    HTTP = "HTTP"
    TCP = "TCP"
    TLS = "TLS"
    SMTP = "SMTP"
    DNS = "DNS"

    @classmethod
    def parse(cls, value: "Protocol | str") -> "Protocol":
        """Case-insensitive lookup; HTTPS is an alias of HTTP."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper()
        if normalized == "HTTPS":
            return cls.HTTP
        return cls(normalized)


class SchedulerState(str, Enum):
    """Scheduler lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


class ConfigErrorKind(str, Enum):
    """Reasons a register/start call can be rejected."""

    DUPLICATE_NAME = "DuplicateName"
    INVALID_ADDRESS = "InvalidAddress"
    INVALID_INTERVAL = "InvalidInterval"
    ALREADY_RUNNING = "AlreadyRunning"
    INVALID_OPTION = "InvalidOption"


class ProbeFailureKind(str, Enum):
    """Failure kinds a probe can report."""

    CONNECT_REFUSED = "ConnectRefused"
    TIMEOUT = "Timeout"
    PROTOCOL_ERROR = "ProtocolError"
    UNREACHABLE = "Unreachable"


class ReportFormat(str, Enum):
    """Supported report renderings."""

    TEXT = "text"
    HTML = "html"


class Defaults:
    """
    Default Values

    Used when neither the caller nor the environment provides a value.
    """

    CHECK_INTERVAL_SECONDS: Final[float] = 60.0
    PER_CHECK_TIMEOUT_MS: Final[int] = 5000
    HISTORY_SIZE: Final[int] = 100
    POOL_SIZE: Final[int] = 5
    ROUND_GRACE_MS: Final[int] = 1000
    STOP_GRACE_SECONDS: Final[float] = 5.0

    TLS_PORT: Final[int] = 443
    SMTP_PORT: Final[int] = 25

    USER_AGENT: Final[str] = "svcwatch/1.0 (+uptime monitor)"
    DIAGNOSTIC_MAX_LENGTH: Final[int] = 200


# Latency value used for down or never-checked services
UNKNOWN_LATENCY_MS: Final[int] = -1
