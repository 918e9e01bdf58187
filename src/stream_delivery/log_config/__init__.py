"""Logging configuration package."""

from .main import (
    SessionLogContext,
    clear_session_context,
    get_context_logger,
    set_session_context,
    update_session_progress,
)


__all__ = [
    "get_context_logger",
    "SessionLogContext",
    "update_session_progress",
    "set_session_context",
    "clear_session_context",
]
