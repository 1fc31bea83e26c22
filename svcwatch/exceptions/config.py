"""
Configuration Exception Classes for svcwatch

Raised synchronously by register() and start(). Each subclass pins
the ConfigErrorKind so callers can branch on ``exc.kind`` or catch
the specific class.
"""

from __future__ import annotations

from typing import Any, Optional

from svcwatch.config.constants import ConfigErrorKind
from svcwatch.exceptions.base import SvcWatchException


class ConfigError(SvcWatchException):
    """
    Base Configuration Error

    Attributes:
        kind: Which rule was violated
    """

    default_error_code = 2000
    default_kind: ConfigErrorKind = ConfigErrorKind.INVALID_OPTION

    def __init__(
        self,
        message: str,
        kind: Optional[ConfigErrorKind] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize configuration error.

        Args:
            message: Error message
            kind: The violated rule (defaults to the class kind)
            field: Name of the offending argument
            value: The rejected value
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        self.kind = kind or self.default_kind
        self.details["kind"] = self.kind.value

        if field:
            self.details["field"] = field

        if value is not None:
            self.details["value"] = self._sanitize_value(value)

    @staticmethod
    def _sanitize_value(value: Any) -> str:
        """Truncate long values for logging."""
        str_value = str(value)
        if len(str_value) > 100:
            str_value = str_value[:100] + "..."
        return str_value


class DuplicateNameError(ConfigError):
    """Raised when a service name is already registered."""

    default_error_code = 2001
    default_kind = ConfigErrorKind.DUPLICATE_NAME

    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__(
            f"Service {name!r} is already registered",
            field="name",
            value=name,
            **kwargs
        )


class InvalidAddressError(ConfigError):
    """Raised when an address does not parse for its protocol."""

    default_error_code = 2002
    default_kind = ConfigErrorKind.INVALID_ADDRESS

    def __init__(
        self,
        address: str,
        protocol: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        message = f"Invalid address {address!r}"
        if protocol:
            message += f" for {protocol}"
        if reason:
            message += f": {reason}"
        super().__init__(message, field="address", value=address, **kwargs)

        if protocol:
            self.details["protocol"] = protocol
        if reason:
            self.details["reason"] = reason


class InvalidIntervalError(ConfigError):
    """Raised when the check interval is not a positive number."""

    default_error_code = 2003
    default_kind = ConfigErrorKind.INVALID_INTERVAL

    def __init__(self, interval: Any, **kwargs: Any) -> None:
        super().__init__(
            f"Check interval must be positive, got {interval!r}",
            field="interval",
            value=interval,
            **kwargs
        )


class AlreadyRunningError(ConfigError):
    """Raised when start() or run_round() is called while running."""

    default_error_code = 2004
    default_kind = ConfigErrorKind.ALREADY_RUNNING

    def __init__(self, message: str = "Monitor is already running", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvalidOptionError(ConfigError):
    """Raised for any other out-of-range option."""

    default_error_code = 2005
    default_kind = ConfigErrorKind.INVALID_OPTION

    def __init__(self, field: str, value: Any, reason: str, **kwargs: Any) -> None:
        super().__init__(
            f"Invalid {field}={value!r}: {reason}",
            field=field,
            value=value,
            **kwargs
        )
