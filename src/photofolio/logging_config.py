"""
Centralized logging configuration for photofolio.

This module provides structured logging setup using structlog with
consistent processors and helpers shared by all components.
"""

import inspect
import logging
import os
import sys
from typing import Any

import structlog

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level() -> int:
    """
    Get log level from the LOG_LEVEL environment variable, defaulting to INFO.

    Returns:
        int: Log level constant from logging module
    """
    return LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def is_development_environment() -> bool:
    """Check if running in a development environment."""
    return os.getenv("ENVIRONMENT", "development").lower() in ["development", "dev", "local", "test"]


def configure_structured_logging() -> None:
    """
    Configure structured logging for the entire application.

    Development renders human readable console lines; every other
    environment renders one JSON object per event.
    """
    log_level = get_log_level()
    is_dev = is_development_environment()

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stderr,
    )

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger().setLevel(log_level)

    logger = structlog.get_logger("photofolio.logging")
    logger.info(
        "logging_configured",
        log_level=logging.getLevelName(log_level),
        environment="development" if is_dev else "production",
    )


def get_logger(name: str | None = None) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (optional, defaults to calling module)

    Returns:
        structlog.BoundLogger: Configured logger instance
    """
    if name is None:
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "unknown")

    return structlog.get_logger(name)


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """Log the duration of an operation in seconds."""
    logger = get_logger("photofolio.performance")
    logger.info("performance_metric", operation=operation, duration_seconds=duration, **context)


def log_user_action(user_name: str, action: str, **context: Any) -> None:
    """
    Log user actions for the audit trail.

    Args:
        user_name: Name of the acting (or affected) user
        action: Action performed
        **context: Additional context information
    """
    logger = get_logger("photofolio.user_actions")
    logger.info("user_action", user_name=user_name, action=action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """
    Log errors with structured context.

    Args:
        error: Exception that occurred
        context: Additional context information
    """
    logger = get_logger("photofolio.errors")

    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }

    if context:
        error_context.update(context)

    logger.error("error_occurred", **error_context, exc_info=error)


def log_security_event(event_type: str, user_id: str | None = None, **context: Any) -> None:
    """Log security-related events such as failed logins or prohibited deletions."""
    logger = get_logger("photofolio.security")
    logger.warning("security_event", event_type=event_type, user_id=user_id, **context)


class LogContext:
    """Context manager binding structured context to every log line inside it."""

    def __init__(self, logger: Any, **context: Any):
        self.logger = logger
        self.context = context
        self.bound_logger: Any = None

    def __enter__(self) -> Any:
        self.bound_logger = self.logger.bind(**self.context)
        return self.bound_logger

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None and self.bound_logger is not None:
            self.bound_logger.error(
                "context_exception", exception_type=exc_type.__name__, exception_message=str(exc_val)
            )


def log_context(name: str | None = None, **context: Any) -> LogContext:
    """
    Create a logging context manager.

    Args:
        name: Logger name (defaults to the photofolio root logger)
        **context: Context variables to add to all log messages

    Returns:
        LogContext: Context manager for structured logging
    """
    return LogContext(get_logger(name or "photofolio"), **context)
