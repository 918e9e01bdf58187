"""Logging configuration and utilities."""

from typing import Any

import structlog


_SESSION_KEYS = (
    "session_id",
    "content_type",
    "content_id",
    "source_index",
    "source_url",
    "quality",
    "session_state",
)


def get_context_logger(name: str) -> structlog.BoundLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)


class SessionLogContext:
    """Context manager binding playback session fields into the logging context."""

    def __init__(self, **context: Any):
        """Initialize with context variables.

        Args:
            **context: Context key-value pairs
        """
        self.context = context

    def __enter__(self):
        """Enter context."""
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context, dropping progress fields bound inside the block too."""
        structlog.contextvars.unbind_contextvars(*set(self.context) | set(_SESSION_KEYS))


def update_session_progress(**kwargs: Any) -> None:
    """Update session progress (state, index, quality) in logging context.

    Args:
        **kwargs: Progress fields to update
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def set_session_context(**kwargs: Any) -> None:
    """Set session context in logging.

    Args:
        **kwargs: Context key-value pairs
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_session_context() -> None:
    """Remove every session field from the logging context."""
    structlog.contextvars.unbind_contextvars(*_SESSION_KEYS)


__all__ = [
    "get_context_logger",
    "SessionLogContext",
    "update_session_progress",
    "set_session_context",
    "clear_session_context",
]
