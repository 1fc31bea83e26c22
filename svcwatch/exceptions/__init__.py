"""
Exceptions Package for svcwatch

Provides the exception hierarchy used by the registry, the
scheduler, the probes and the notifier.
"""

from svcwatch.exceptions.base import (
    SvcWatchException,
    ListenerFailure,
)

from svcwatch.exceptions.config import (
    ConfigError,
    DuplicateNameError,
    InvalidAddressError,
    InvalidIntervalError,
    AlreadyRunningError,
    InvalidOptionError,
)

from svcwatch.exceptions.probe import (
    ProbeFailure,
    ProbeConnectRefused,
    ProbeTimeout,
    ProbeProtocolError,
    ProbeUnreachable,
)

__all__ = [
    # Base exceptions
    "SvcWatchException",
    "ListenerFailure",

    # Configuration exceptions
    "ConfigError",
    "DuplicateNameError",
    "InvalidAddressError",
    "InvalidIntervalError",
    "AlreadyRunningError",
    "InvalidOptionError",

    # Probe exceptions
    "ProbeFailure",
    "ProbeConnectRefused",
    "ProbeTimeout",
    "ProbeProtocolError",
    "ProbeUnreachable",
]
