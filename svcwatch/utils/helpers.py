"""
============================================================================
SVCWATCH - HELPERS UTILITY
============================================================================
Small time, string and process helpers shared by the reports and the
status server.

License: MIT
============================================================================
"""

import html
import os
from datetime import datetime, timezone
from typing import Optional

import psutil


# ============================================================================
# TIME UTILITIES
# ============================================================================

class TimeHelper:
    """
    Time and date manipulation utilities.
    """

    @staticmethod
    def get_utc_now() -> datetime:
        """Get current timezone-aware UTC datetime."""
        return datetime.now(timezone.utc)

    @staticmethod
    def format_datetime(dt: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
        """
        Format datetime to string, ``never`` for None.

        Args:
            dt: Datetime to format
            fmt: Format string

        Returns:
            Formatted string
        """
        if dt is None:
            return "never"
        return dt.strftime(fmt)

    @staticmethod
    def seconds_to_human_readable(seconds: int) -> str:
        """
        Convert seconds to human-readable format.

        Args:
            seconds: Number of seconds

        Returns:
            Human-readable string (e.g., "2h 30m 15s")
        """
        if seconds < 0:
            return "0s"

        days, remainder = divmod(seconds, 86400)
        hours, remainder = divmod(remainder, 3600)
        minutes, secs = divmod(remainder, 60)

        parts = []
        if days > 0:
            parts.append(f"{days}d")
        if hours > 0:
            parts.append(f"{hours}h")
        if minutes > 0:
            parts.append(f"{minutes}m")
        if secs > 0 or not parts:
            parts.append(f"{secs}s")

        return " ".join(parts)


# ============================================================================
# STRING UTILITIES
# ============================================================================

class StringHelper:
    """
    String manipulation utilities.
    """

    @staticmethod
    def truncate(text: str, max_length: int = 100, suffix: str = "...") -> str:
        """
        Truncate text to maximum length.

        Args:
            text: Text to truncate
            max_length: Maximum length
            suffix: Suffix to add if truncated

        Returns:
            Truncated text
        """
        if len(text) <= max_length:
            return text
        return text[:max_length - len(suffix)] + suffix

    @staticmethod
    def escape_html(text: str) -> str:
        """
        Escape HTML special characters.

        Args:
            text: Text to escape

        Returns:
            Escaped text
        """
        return html.escape(text)


# ============================================================================
# STATUS FORMATTING
# ============================================================================

class StatusHelper:
    """
    Human-facing renderings of service state.
    """

    @staticmethod
    def format_uptime_status(is_up: bool, checked: bool = True) -> str:
        """
        Format service status with emoji.

        Args:
            is_up: Whether service is up
            checked: False while the service has never been checked

        Returns:
            Formatted status string
        """
        if not checked:
            return "⚪ UNKNOWN"
        if is_up:
            return "🟢 UP"
        return "🔴 DOWN"


# ============================================================================
# PROCESS UTILITIES
# ============================================================================

class PerformanceHelper:
    """
    Process resource figures for the /health endpoint.
    """

    @staticmethod
    def get_memory_usage() -> float:
        """
        Get current memory usage in MB.

        Returns:
            Resident set size in MB
        """
        process = psutil.Process(os.getpid())
        return process.memory_info().rss / 1024 / 1024
