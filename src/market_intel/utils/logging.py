"""
Logging configuration and utilities for the market data pipeline.

Provides centralized logging setup with support for:
- Console and file output
- Log rotation
- Per-module loggers
- Context-tagged loggers (provider, address)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from market_intel.config.settings import LoggingSettings


# Root logger name for the application
ROOT_LOGGER_NAME = "market_intel"

_logging_configured = False


def setup_logging(
    settings: "LoggingSettings | None" = None,
    level: str | None = None,
) -> logging.Logger:
    """
    Configure the application logging system.

    Sets up handlers for console and/or file output based on settings.
    Should be called once at application startup.

    Args:
        settings: Logging configuration. If None, uses sensible defaults.
        level: Optional level name overriding the configured level.

    Returns:
        The configured root logger for the application.
    """
    global _logging_configured

    logger = logging.getLogger(ROOT_LOGGER_NAME)

    if _logging_configured:
        return logger

    logger.handlers.clear()

    if settings is None:
        level_name = "INFO"
        log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        date_format = "%Y-%m-%d %H:%M:%S"
        log_to_console = True
        file_path = None
        max_file_size_mb = 10
        backup_count = 3
    else:
        level_name = settings.level
        log_format = settings.format
        date_format = settings.date_format
        log_to_console = settings.log_to_console
        file_path = settings.file_path
        max_file_size_mb = settings.max_file_size_mb
        backup_count = settings.backup_count

    resolved_level = getattr(logging, (level or level_name).upper())
    logger.setLevel(resolved_level)

    formatter = logging.Formatter(fmt=log_format, datefmt=date_format)

    if log_to_console:
        # stderr keeps stdout clean for --json output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if file_path is not None:
        file_handler = _create_file_handler(
            file_path=file_path,
            max_bytes=max_file_size_mb * 1024 * 1024,
            backup_count=backup_count,
            level=resolved_level,
            formatter=formatter,
        )
        logger.addHandler(file_handler)

    logger.propagate = False

    _logging_configured = True

    return logger


def _create_file_handler(
    file_path: Path,
    max_bytes: int,
    backup_count: int,
    level: int,
    formatter: logging.Formatter,
) -> RotatingFileHandler:
    """Create a rotating file handler, creating the parent directory."""
    file_path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=str(file_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)

    return handler


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger instance for the specified module.

    All loggers are children of the application root logger, ensuring
    consistent configuration across the application.

    Args:
        name: Module name for the logger. Typically pass __name__.

    Returns:
        Logger instance configured as child of application root.
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)

    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)

    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def reset_logging() -> None:
    """Remove all handlers and reset the configured flag."""
    global _logging_configured

    logger = logging.getLogger(ROOT_LOGGER_NAME)

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    _logging_configured = False


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that appends contextual tags to log messages.

    Example:
        >>> base_logger = get_logger(__name__)
        >>> logger = LoggerAdapter(base_logger, {"provider": "dsr"})
        >>> logger.info("Login submitted")  # "Login submitted [provider=dsr]"
    """

    def process(
        self, msg: str, kwargs: dict
    ) -> tuple[str, dict]:
        if self.extra:
            context_str = " ".join(f"[{k}={v}]" for k, v in self.extra.items())
            msg = f"{msg} {context_str}"
        return msg, kwargs


def get_logger_with_context(
    name: str | None = None,
    **context: str,
) -> LoggerAdapter:
    """
    Get a logger with additional context that appears in all messages.

    Example:
        >>> logger = get_logger_with_context(__name__, provider="corelogic")
        >>> logger.info("Search submitted")
    """
    base_logger = get_logger(name)
    return LoggerAdapter(base_logger, context)


def mask_token(token: str | None) -> str:
    """Shorten a bearer token for log output."""
    if not token:
        return "<none>"
    return f"{token[:8]}..."
