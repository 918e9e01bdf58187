"""Correlation IDs, hierarchical context and sampling control for structured logs."""

from .config import (
    SamplingStrategy,
    StreamLoggingConfig,
    configure_logging,
    get_logging_config,
    set_logging_config,
)
from .context import LoggingContext, clear_context, get_current_context


__all__ = [
    "StreamLoggingConfig",
    "SamplingStrategy",
    "LoggingContext",
    "configure_logging",
    "get_current_context",
    "clear_context",
    "get_logging_config",
    "set_logging_config",
]
