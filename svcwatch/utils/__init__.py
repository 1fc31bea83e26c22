"""
Utilities Package for svcwatch

Logging setup, address validation and small helpers.
"""

from svcwatch.utils.logger import get_logger, setup_logging
from svcwatch.utils.validators import AddressValidator, ParsedAddress
from svcwatch.utils.helpers import TimeHelper, StringHelper, StatusHelper, PerformanceHelper

__all__ = [
    "get_logger",
    "setup_logging",
    "AddressValidator",
    "ParsedAddress",
    "TimeHelper",
    "StringHelper",
    "StatusHelper",
    "PerformanceHelper",
]
