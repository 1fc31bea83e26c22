"""
Base Exception Classes for svcwatch

Provides the foundation exception hierarchy from which all
other exceptions inherit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class SvcWatchException(Exception):
    """
    Base Exception Class

    All custom exceptions in svcwatch inherit from this class.
    Provides common functionality for error reporting and serialization.

    Attributes:
        message: Human-readable error message
        error_code: Numeric error code for categorization
        details: Additional error details as dictionary
        cause: The underlying exception, if any
        timestamp: When the exception occurred
    """

    default_error_code: int = 1000

    def __init__(
        self,
        message: str = "An error occurred",
        error_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Numeric error code
            details: Additional error details
            cause: The underlying exception that caused this one
        """
        super().__init__(message)

        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    @property
    def full_message(self) -> str:
        """Get full error message with code."""
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def log_format(self) -> str:
        """
        Format exception for logging.

        Returns:
            Formatted string for logging
        """
        parts = [
            f"Exception: {self.__class__.__name__}",
            f"Code: {self.error_code}",
            f"Message: {self.message}"
        ]

        if self.details:
            parts.append(f"Details: {self.details}")

        if self.cause:
            parts.append(f"Cause: {self.cause}")

        return " | ".join(parts)

    def __str__(self) -> str:
        return self.full_message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code}, "
            f"details={self.details})"
        )


class ListenerFailure(SvcWatchException):
    """
    Listener Failure

    Wraps an exception raised by a transition listener. It is built
    only for logging; the Notifier never lets it escape.
    """

    default_error_code = 4000

    def __init__(
        self,
        listener_name: str,
        service_name: str,
        cause: BaseException,
    ) -> None:
        super().__init__(
            f"Listener {listener_name} failed for service {service_name!r}: {cause}",
            details={"listener": listener_name, "service": service_name},
            cause=cause,
        )
