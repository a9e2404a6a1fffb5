"""Structured logging configuration with JSON format.

Features:
- JSON-formatted log output for production
- Human-readable format for development
- Session context (phase_id, round) bound per consensus session task
  through structlog contextvars, so every entry logged while the task runs
  (including adapter calls it spawns) carries it
- Service context on every entry
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from src.core.config import get_settings


_configured = False


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add service context to all log entries.

    Args:
        logger: The wrapped logger object.
        method_name: The name of the method called on the logger.
        event_dict: The event dictionary to process.

    Returns:
        Updated event dictionary with service context.
    """
    settings = get_settings()
    event_dict["service"] = settings.service_name
    event_dict["environment"] = settings.environment
    return event_dict


def bind_session_context(phase_id: str, round: int | None = None) -> None:
    """Bind consensus session fields to the current task's log context.

    Each session runs in its own asyncio task, and tasks copy the context
    they are created in, so bindings never leak between sessions.

    Args:
        phase_id: Phase of the running session.
        round: Round currently being run, if any.
    """
    fields: dict[str, Any] = {"phase_id": phase_id}
    if round is not None:
        fields["round"] = round
    structlog.contextvars.bind_contextvars(**fields)


def clear_session_context() -> None:
    """Remove consensus session fields from the current log context."""
    structlog.contextvars.unbind_contextvars("phase_id", "round")


def configure_logging() -> None:
    """Configure structured logging for the application.

    In development: Human-readable colored output
    In production: JSON-formatted structured logs

    Safe to call more than once; only the first call configures structlog.
    """
    global _configured

    if _configured:
        return

    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())

    use_json = settings.environment in ("production", "staging")

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_service_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if use_json:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (scoring modules) to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name (module name recommended).

    Returns:
        Configured structlog BoundLogger instance.

    Example:
        ```python
        from src.core.logging import get_logger

        logger = get_logger(__name__)
        logger.info("round_evaluated", phase_id="analyze", round=2, score=0.91)
        ```
    """
    return structlog.get_logger(name)


# Convenience type alias
Logger = structlog.BoundLogger
