"""Stream delivery custom exception hierarchy.

Provides specific exception types for source handling, playback sessions,
network probing, analytics and configuration. Every exception carries an
optional context dictionary that is rendered into ``str()`` for logging.

Exception Hierarchy:
    StreamDeliveryError (base)
    ├── SourceError
    │   ├── NoSourcesError
    │   └── MalformedSourceError
    ├── SourcesExhaustedError
    ├── SessionStateError
    ├── PlaybackEngineError
    ├── ProbeError
    │   └── ProbeTimeoutError
    ├── AnalyticsError
    │   ├── AnalyticsDeliveryError
    │   └── AnalyticsValidationError
    └── ConfigError
        └── ConfigValidationError
"""

from typing import Any, Optional


class StreamDeliveryError(Exception):
    """Base exception for all stream delivery errors.

    All package-specific exceptions inherit from this class to allow
    catching every delivery error with a single except clause.
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        """Initialize stream delivery exception.

        Args:
            message: Error message
            context: Optional context dictionary for debugging
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return string representation with context."""
        if self.context:
            context_str = "; ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


# Source Errors

class SourceError(StreamDeliveryError):
    """Base exception for stream source problems."""

    pass


class NoSourcesError(SourceError):
    """Raised when an operation needs at least one source and got none.

    Attributes:
        content_ref: ``(content_type, content_id)`` of the item, if known
    """

    def __init__(
        self,
        message: str = "No stream sources available",
        content_ref: Optional[tuple[str, Any]] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if content_ref:
            context["content"] = f"{content_ref[0]}:{content_ref[1]}"
        super().__init__(message, context)
        self.content_ref = content_ref


class MalformedSourceError(SourceError):
    """Raised when a raw catalog source record cannot be interpreted.

    Attributes:
        raw: Preview of the offending record
    """

    def __init__(
        self,
        message: str,
        raw: Any = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if raw is not None:
            context["raw"] = repr(raw)[:100]
        super().__init__(message, context)
        self.raw = raw


# Session Errors

class SourcesExhaustedError(StreamDeliveryError):
    """Raised once per session when every source has failed.

    Attributes:
        session_id: Session that exhausted its sources
        attempts: Number of sources tried
        last_error: Last fatal error reported by the playback engine
    """

    def __init__(
        self,
        message: str = "All stream sources failed",
        session_id: Optional[str] = None,
        attempts: int = 0,
        last_error: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if session_id:
            context["session_id"] = session_id
        context["attempts"] = attempts
        if last_error:
            context["last_error"] = last_error[:200]
        super().__init__(message, context)
        self.session_id = session_id
        self.attempts = attempts
        self.last_error = last_error


class SessionStateError(StreamDeliveryError):
    """Raised when an operation is not legal in the session's current state.

    Attributes:
        state: Current session state
        operation: Operation that was attempted
    """

    def __init__(
        self,
        message: str,
        state: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if state:
            context["state"] = state
        if operation:
            context["operation"] = operation
        super().__init__(message, context)
        self.state = state
        self.operation = operation


class PlaybackEngineError(StreamDeliveryError):
    """Raised by a playback engine when a source cannot be played.

    Attributes:
        fatal: Whether the current source needs a fresh attach to continue
        url: Source URL the engine was playing
    """

    def __init__(
        self,
        message: str,
        fatal: bool = True,
        url: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        context["fatal"] = fatal
        if url:
            context["url"] = url[:100]
        super().__init__(message, context)
        self.fatal = fatal
        self.url = url


# Probe Errors

class ProbeError(StreamDeliveryError):
    """Base exception for reachability and network probes.

    Attributes:
        url: Probed URL
        http_status: HTTP status code if a response was received
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if url:
            context["url"] = url[:100]
        if http_status:
            context["http_status"] = http_status
        super().__init__(message, context)
        self.url = url
        self.http_status = http_status


class ProbeTimeoutError(ProbeError):
    """Raised when a probe exceeds its own timeout.

    Attributes:
        timeout: Configured timeout in seconds
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if timeout:
            context["timeout"] = timeout
        super().__init__(message, url=url, context=context)
        self.timeout = timeout


# Analytics Errors

class AnalyticsError(StreamDeliveryError):
    """Base exception for analytics recording."""

    pass


class AnalyticsDeliveryError(AnalyticsError):
    """Raised by sinks when a record could not be delivered.

    Attributes:
        http_status: HTTP status code if available
    """

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if http_status:
            context["http_status"] = http_status
        super().__init__(message, context)
        self.http_status = http_status


class AnalyticsValidationError(AnalyticsError):
    """Raised when an inbound analytics record fails validation.

    Attributes:
        errors: Validation error details
    """

    def __init__(
        self,
        message: str = "Invalid analytics data",
        errors: Optional[list[dict[str, Any]]] = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if errors:
            context["error_count"] = len(errors)
        super().__init__(message, context)
        self.errors = errors or []


# Configuration Errors

class ConfigError(StreamDeliveryError):
    """Base exception for configuration errors."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails.

    Attributes:
        config_key: Configuration key that failed validation
        config_value: The invalid configuration value
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Any = None,
        context: Optional[dict] = None,
    ):
        if context is None:
            context = {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = str(config_value)[:100]
        super().__init__(message, context)
        self.config_key = config_key
        self.config_value = config_value


__all__ = [
    "StreamDeliveryError",
    "SourceError",
    "NoSourcesError",
    "MalformedSourceError",
    "SourcesExhaustedError",
    "SessionStateError",
    "PlaybackEngineError",
    "ProbeError",
    "ProbeTimeoutError",
    "AnalyticsError",
    "AnalyticsDeliveryError",
    "AnalyticsValidationError",
    "ConfigError",
    "ConfigValidationError",
]
