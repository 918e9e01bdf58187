"""Logging configuration with sampling and operation-level control."""

import hashlib
import logging
import random
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog


class SamplingStrategy(str, Enum):
    """Sampling strategy for debug logs."""

    RANDOM = "random"
    """Random sampling based on sample_rate probability"""

    DETERMINISTIC = "deterministic"
    """Deterministic sampling based on hash of request_id"""

    NONE = "none"
    """No sampling - log everything"""


@dataclass
class StreamLoggingConfig:
    """Configuration for stream delivery logging.

    High-volume debug output (per bandwidth sample, per source probe) is gated by
    ``should_log_debug`` so a busy monitor does not flood the logs.

    Example:
        ```python
        config = StreamLoggingConfig(
            level="INFO",
            debug_sample_rate=0.1,
            sampling_strategy=SamplingStrategy.DETERMINISTIC,
            operation_levels={
                "health_cycle": "INFO",
                "probe_source": "DEBUG",
            },
        )
        configure_logging(config)
        ```
    """

    level: str = "INFO"

    debug_sample_rate: float = 0.0
    """Rate for sampling debug logs (0.0 = none, 1.0 = all)"""

    sampling_strategy: SamplingStrategy = SamplingStrategy.RANDOM

    operation_levels: dict[str, str] = field(default_factory=dict)
    """Per-operation log level overrides"""

    json_output: bool = True
    """Render JSON lines; console rendering otherwise"""

    def should_log_debug(self, operation: str | None = None, request_id: str | None = None) -> bool:
        """Determine if a sampled debug log should be emitted.

        Args:
            operation: Operation name (e.g., "probe_source", "bandwidth_sample")
            request_id: Request ID for deterministic sampling

        Returns:
            True if debug log should be emitted
        """
        if operation and self.operation_levels.get(operation) == "INFO":
            return False

        if self.debug_sample_rate <= 0.0:
            return False
        if self.debug_sample_rate >= 1.0:
            return True

        if self.sampling_strategy == SamplingStrategy.NONE:
            return True
        if self.sampling_strategy == SamplingStrategy.DETERMINISTIC and request_id:
            hash_value = int(hashlib.md5(request_id.encode()).hexdigest()[:8], 16)
            return hash_value < int(self.debug_sample_rate * 0xFFFFFFFF)
        return random.random() < self.debug_sample_rate

    def get_effective_level(self, operation: str | None = None) -> str:
        """Get effective log level for an operation."""
        if operation and operation in self.operation_levels:
            return self.operation_levels[operation]
        return self.level

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "StreamLoggingConfig":
        """Create configuration from a (settings) dictionary."""
        data = dict(config_dict)
        strategy = data.get("sampling_strategy")
        if isinstance(strategy, str):
            data["sampling_strategy"] = SamplingStrategy(strategy)
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "level": self.level,
            "debug_sample_rate": self.debug_sample_rate,
            "sampling_strategy": self.sampling_strategy.value,
            "operation_levels": self.operation_levels.copy(),
            "json_output": self.json_output,
        }


_default_config = StreamLoggingConfig()


def get_logging_config() -> StreamLoggingConfig:
    """Get global logging configuration."""
    return _default_config


def set_logging_config(config: StreamLoggingConfig) -> None:
    """Set global logging configuration."""
    global _default_config
    _default_config = config


def configure_logging(config: StreamLoggingConfig | None = None) -> None:
    """Install structlog processors and the stdlib root level.

    Args:
        config: Logging configuration; the global one is used when omitted
    """
    if config is not None:
        set_logging_config(config)
    config = get_logging_config()

    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer: Any
    if config.json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )


__all__ = [
    "SamplingStrategy",
    "StreamLoggingConfig",
    "configure_logging",
    "get_logging_config",
    "set_logging_config",
]
