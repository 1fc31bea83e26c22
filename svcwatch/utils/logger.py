"""
============================================================================
SVCWATCH - LOGGING UTILITY
============================================================================
loguru configuration shared by every component. Library code only asks
for a bound logger via get_logger(); sinks are installed once by the
entry point through setup_logging().

License: MIT
============================================================================
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from svcwatch.config.settings import Settings, get_settings


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}"

DEFAULT_NAME = "svcwatch"


def _default_name(record) -> None:
    # records from loggers that never called bind() still render {extra[name]}
    record["extra"].setdefault("name", DEFAULT_NAME)


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================

def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure loguru sinks from LoggingSettings.

    Replaces every existing sink: a console sink, an optional rotating
    file sink (plain text or JSON), and a separate error file whenever
    file logging is enabled.
    """
    settings = settings or get_settings()
    log_settings = settings.logging
    log_level = log_settings.level.value

    logger.remove()
    logger.configure(patcher=_default_name)

    # Console Handler
    if log_settings.console_enabled:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=log_level,
            colorize=log_settings.colorize,
            backtrace=True,
            diagnose=False,
        )

    # File Handler
    if log_settings.file_enabled:
        log_file_path = Path(log_settings.file_path)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file_path,
            format=FILE_FORMAT,
            level=log_level,
            rotation=log_settings.file_rotation,
            retention=log_settings.file_retention,
            compression="zip",
            serialize=log_settings.json_enabled,
            backtrace=True,
            diagnose=False,
        )

        # Error log file (separate file for errors)
        logger.add(
            log_file_path.parent / "errors.log",
            format=FILE_FORMAT,
            level="ERROR",
            rotation="1 day",
            retention="7 days",
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    logger.info(f"Logging system initialized: level={log_level}")


def get_logger(name: Optional[str] = None):
    """
    Get logger instance with optional name.

    Args:
        name: Component name shown in every record, "svcwatch" if omitted

    Returns:
        Logger instance
    """
    return logger.bind(name=name or DEFAULT_NAME)
