"""Correlation context for monitor cycles and playback sessions.

A ``LoggingContext`` carries a ``request_id`` shared by everything done on behalf
of one logical operation (one health cycle, one playback session) plus a
``span_id`` per nested step. IDs propagate across ``await`` boundaries through
contextvars and are bound into structlog's context so every log line emitted
inside the block carries them.
"""

import contextlib
import contextvars
import secrets
import time
from dataclasses import dataclass, field
from typing import Any

import structlog


_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_span_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "span_id", default=None
)
_parent_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "parent_id", default=None
)
_operation_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)

_BOUND_KEYS = ("request_id", "span_id", "parent_id", "operation")
_BUILTIN_NAMESPACES = ("session", "probe", "result")


def _generate_id() -> str:
    """Generate a 12-character hexadecimal ID."""
    return secrets.token_hex(6)


@dataclass
class LoggingContext:
    """Logging context with request IDs and hierarchical tracking.

    Example:
        ```python
        async with LoggingContext(operation="health_cycle") as cycle:
            logger.info("cycle.start", **cycle.to_log_dict())

            # Nested operation inherits request_id, parent_id = cycle.span_id
            with LoggingContext(operation="check_item", probe={"item": "channel:7"}) as item:
                logger.debug("item.check", **item.to_log_dict())
        ```
    """

    request_id: str | None = None
    span_id: str | None = None
    parent_id: str | None = None

    operation: str | None = None

    # Namespace-grouped fields
    session: dict[str, Any] = field(default_factory=dict)
    probe: dict[str, Any] = field(default_factory=dict)
    result: dict[str, Any] = field(default_factory=dict)

    _custom_namespaces: dict[str, dict[str, Any]] = field(default_factory=dict)

    _start_time: float = field(default_factory=time.monotonic)
    _tokens: list[tuple[contextvars.ContextVar, contextvars.Token]] = field(
        default_factory=list, init=False, repr=False
    )

    def __post_init__(self) -> None:
        """Inherit or generate IDs."""
        if self.request_id is None:
            self.request_id = _request_id_var.get() or _generate_id()

        if self.span_id is None:
            self.span_id = _generate_id()

        if self.parent_id is None:
            self.parent_id = _span_id_var.get()

    def __enter__(self) -> "LoggingContext":
        """Enter context and bind to contextvars."""
        for var, value in (
            (_request_id_var, self.request_id),
            (_span_id_var, self.span_id),
            (_parent_id_var, self.parent_id),
            (_operation_var, self.operation),
        ):
            self._tokens.append((var, var.set(value)))

        structlog.contextvars.bind_contextvars(
            request_id=self.request_id,
            span_id=self.span_id,
            parent_id=self.parent_id,
            operation=self.operation,
        )
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit context, restoring the enclosing context if any."""
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)

        # Re-bind the enclosing context so nested blocks don't wipe the parent IDs
        if _request_id_var.get() is not None:
            structlog.contextvars.bind_contextvars(
                request_id=_request_id_var.get(),
                span_id=_span_id_var.get(),
                parent_id=_parent_id_var.get(),
                operation=_operation_var.get(),
            )
        else:
            structlog.contextvars.unbind_contextvars(*_BOUND_KEYS)

    async def __aenter__(self) -> "LoggingContext":
        """Async context manager entry."""
        return self.__enter__()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        self.__exit__(exc_type, exc_val, exc_tb)

    def to_log_dict(self, include_namespaces: bool = True) -> dict[str, Any]:
        """Convert context to keyword arguments for a structured log call.

        Args:
            include_namespaces: Whether to include namespace groups

        Returns:
            Dictionary with context fields
        """
        log_dict: dict[str, Any] = {
            "request_id": self.request_id,
            "span_id": self.span_id,
        }
        if self.parent_id:
            log_dict["parent_id"] = self.parent_id
        if self.operation:
            log_dict["operation"] = self.operation

        if include_namespaces:
            for namespace in _BUILTIN_NAMESPACES:
                fields = getattr(self, namespace)
                if fields:
                    log_dict[namespace] = fields
            for namespace, fields in self._custom_namespaces.items():
                if fields:
                    log_dict[namespace] = fields

        return log_dict

    def set_namespace(self, namespace: str, **fields: Any) -> None:
        """Set fields in a namespace (``session``, ``probe``, ``result`` or custom)."""
        if namespace in _BUILTIN_NAMESPACES:
            getattr(self, namespace).update(fields)
        else:
            self._custom_namespaces.setdefault(namespace, {}).update(fields)

    def get_namespace(self, namespace: str) -> dict[str, Any]:
        """Get a copy of the fields stored in a namespace."""
        if namespace in _BUILTIN_NAMESPACES:
            return dict(getattr(self, namespace))
        return dict(self._custom_namespaces.get(namespace, {}))

    def get_duration(self) -> float:
        """Elapsed seconds since context creation."""
        return time.monotonic() - self._start_time


def get_current_context() -> LoggingContext | None:
    """Reconstruct the current logging context from contextvars, if any."""
    request_id = _request_id_var.get()
    if request_id is None:
        return None

    return LoggingContext(
        request_id=request_id,
        span_id=_span_id_var.get(),
        parent_id=_parent_id_var.get(),
        operation=_operation_var.get(),
    )


def clear_context() -> None:
    """Clear all logging context from contextvars.

    Useful for testing or explicit context cleanup.
    """
    _request_id_var.set(None)
    _span_id_var.set(None)
    _parent_id_var.set(None)
    _operation_var.set(None)

    with contextlib.suppress(KeyError):
        structlog.contextvars.unbind_contextvars(*_BOUND_KEYS)


__all__ = [
    "LoggingContext",
    "get_current_context",
    "clear_context",
]
