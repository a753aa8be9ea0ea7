"""Structured logging configuration for copilot-llm.

Uses structlog for JSON-formatted or console logs. Each device authorization
attempt gets a login_attempt_id via contextvars so the code request, every
poll and the final exchange can be traced together.

Usage:
    from copilot_llm.core.logging import get_logger, set_login_attempt_id

    logger = get_logger(__name__)

    set_login_attempt_id(str(uuid.uuid4()))
    logger.info("device_code_issued", interval=5, expires_in=900)
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog

# Context variable for the current device authorization attempt
_login_attempt_id: ContextVar[str | None] = ContextVar("login_attempt_id", default=None)


def set_login_attempt_id(attempt_id: str | None) -> None:
    """Set the login attempt ID for the current context.

    Args:
        attempt_id: UUID string for this attempt, or None to clear
    """
    _login_attempt_id.set(attempt_id)


def get_login_attempt_id() -> str | None:
    """Get the current login attempt ID, if set."""
    return _login_attempt_id.get()


def add_login_attempt_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor to add the login attempt ID to log entries."""
    attempt_id = _login_attempt_id.get()
    if attempt_id is not None:
        event_dict["login_attempt_id"] = attempt_id
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the application.

    Logs go to stderr so that commands printing a token on stdout stay pipeable.
    Safe to call again once the config file has been read.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON; if False, output human-readable format
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_login_attempt_id,
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        A structlog BoundLogger instance
    """
    return structlog.get_logger(name)
