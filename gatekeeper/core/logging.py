"""
Structured logging built on structlog.

Request handlers and the arq worker share one configuration. Every event is a
snake_case name plus keyword fields; the request middleware binds the request
id and, once authenticated, the user id so that later events carry them
without passing them around.

Never log raw passwords or raw tokens.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

from gatekeeper.config import settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[str | None] = ContextVar("user_id", default=None)


def add_request_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Copy the request/user ids from context variables into the event."""
    request_id = request_id_ctx.get(None)
    if request_id:
        event_dict.setdefault("request_id", request_id)

    user_id = user_id_ctx.get(None)
    if user_id:
        event_dict.setdefault("user_id", user_id)

    return event_dict


def configure_logging() -> None:
    """
    Configure structlog and the stdlib root logger.

    Development gets a coloured console renderer; staging and production emit
    one JSON object per line (unless LOG_FORMAT is "console").
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_request_context,
        structlog.processors.StackInfoRenderer(),
    ]

    use_console = settings.ENVIRONMENT == "development" or settings.LOG_FORMAT == "console"
    if use_console:
        processors: list[Processor] = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper()),
    )

    # SQL echo is controlled by DB_ECHO, not by the log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    if settings.ENVIRONMENT != "development":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance with the given name.

    Example:
        logger = get_logger(__name__)
        logger.info("session_created", session_id=session.id, user_id=user.id)
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def set_request_context(request_id: str, user_id: str | None = None) -> None:
    """Set the context variables for the current request."""
    request_id_ctx.set(request_id)
    if user_id:
        user_id_ctx.set(user_id)


def set_user_context(user_id: str) -> None:
    """Attach the authenticated user to subsequent log events."""
    user_id_ctx.set(user_id)


def clear_request_context() -> None:
    """Clear context variables after request completes."""
    request_id_ctx.set(None)
    user_id_ctx.set(None)


def bind_context(**kwargs: Any) -> None:
    """
    Bind additional context to all subsequent logs in this context.

    Background jobs use this to tag their events:
        bind_context(task="cleanup_expired_tokens")
    """
    structlog.contextvars.bind_contextvars(**kwargs)
