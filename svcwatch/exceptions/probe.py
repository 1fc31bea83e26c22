"""
Probe Exception Classes for svcwatch

Probes raise these; the checker pool converts every one of them
into a down Outcome, so they never leave a check task.
"""

from __future__ import annotations

from typing import Any, Optional

from svcwatch.config.constants import Defaults, ProbeFailureKind
from svcwatch.exceptions.base import SvcWatchException


class ProbeFailure(SvcWatchException):
    """
    Base Probe Failure

    Attributes:
        kind: Failure category reported in the diagnostic string
        address: The probed address
    """

    default_error_code = 3000
    default_kind: ProbeFailureKind = ProbeFailureKind.PROTOCOL_ERROR

    def __init__(
        self,
        message: str,
        kind: Optional[ProbeFailureKind] = None,
        address: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        self.kind = kind or self.default_kind
        self.address = address
        self.details["kind"] = self.kind.value

        if address:
            self.details["address"] = address

    @property
    def diagnostic(self) -> str:
        """Short ``Kind: detail`` string stored on the service status."""
        text = f"{self.kind.value}: {self.message}"
        return text[:Defaults.DIAGNOSTIC_MAX_LENGTH]


class ProbeConnectRefused(ProbeFailure):
    """The peer actively refused the connection."""

    default_error_code = 3001
    default_kind = ProbeFailureKind.CONNECT_REFUSED


class ProbeTimeout(ProbeFailure):
    """The probe did not finish within its timeout."""

    default_error_code = 3002
    default_kind = ProbeFailureKind.TIMEOUT


class ProbeProtocolError(ProbeFailure):
    """The peer answered, but not the way the protocol requires."""

    default_error_code = 3003
    default_kind = ProbeFailureKind.PROTOCOL_ERROR


class ProbeUnreachable(ProbeFailure):
    """Name resolution or routing to the peer failed."""

    default_error_code = 3004
    default_kind = ProbeFailureKind.UNREACHABLE
