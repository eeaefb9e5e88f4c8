"""Logging and observability configuration using Pydantic Logfire.

This module provides standardized logging utilities and configuration.
All modules should use Python's standard logging library (logging.getLogger(__name__)),
and Logfire will automatically capture and enrich these logs.

Standard usage:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Message", extra={"key": "value"})

Structured logging utilities:
    log_with_context(logger, "info", "Message", task_id="123", actor_alias="jan")
"""

import logging

import logfire

from taakbeheer import __version__
from taakbeheer.core.config import settings


def configure_logfire() -> None:
    """Configure Pydantic Logfire with token from environment.

    Routes standard logging records through Logfire so that every
    `logger.info(..., extra=...)` call in the services ends up as a structured log.
    """
    logfire.configure(
        token=settings.logfire_token,
        service_name="taakbeheer",
        service_version=__version__,
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )
    logging.basicConfig(handlers=[logfire.LogfireLoggingHandler()], level=logging.INFO)

    logger = logging.getLogger(__name__)
    logger.info("Logfire configured successfully")


def span(name: str) -> logfire.LogfireSpan:
    """Create a custom span for service layer functions.

    Usage:
        with span("task_service.move_task"):
            # Your service logic here
            pass
    """
    return logfire.span(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """Log a message with structured context fields.

    Args:
        logger: Logger instance to use
        level: Log level ("debug", "info", "warning", "error", "critical")
        message: Log message
        **context: Additional context fields (task_id, actor_alias, action_type, etc.)

    Usage:
        log_with_context(logger, "info", "Task moved", task_id="123", action_type="move")
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra=context)


def log_with_actor_context(
    logger: logging.Logger,
    level: str,
    message: str,
    actor_alias: str | None = None,
    **extra: object,
) -> None:
    """Log a message with the acting alias attached.

    Args:
        logger: Logger instance to use
        level: Log level ("debug", "info", "warning", "error", "critical")
        message: Log message
        actor_alias: Alias of the authenticated actor
        **extra: Additional context fields

    Usage:
        log_with_actor_context(logger, "info", "Proposal accepted", actor_alias="edgar", open_task_id="42")
    """
    context = {"actor_alias": actor_alias, **extra} if actor_alias else extra
    log_with_context(logger, level, message, **context)
