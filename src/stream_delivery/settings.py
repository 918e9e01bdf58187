"""
Settings Management Module

Provides pydantic-based configuration management with:
- YAML configuration file loading
- Environment-specific YAML overlays (config.{environment}.yaml)
- Environment variable overrides (STREAM_*, nested with "__")
- Typed sections for every component
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class HttpSettings(BaseModel):
    """HTTP client pool settings."""

    timeout: float = Field(default=10.0, gt=0)
    max_connections: int = Field(default=50, gt=0)
    max_keepalive_connections: int = Field(default=20, ge=0)
    keepalive_expiry: float = 5.0
    follow_redirects: bool = True
    verify_ssl: bool = True
    user_agent: str = "stream-delivery/1.0"


class ProberSettings(BaseModel):
    """Network prober settings."""

    rtt_url: Optional[str] = None
    bandwidth_url: Optional[str] = None
    sample_size: int = Field(default=3, ge=1)
    sample_timeout: float = Field(default=5.0, gt=0)
    payload_bytes: int = Field(default=128 * 1024, gt=0)
    sample_delay: float = Field(default=0.2, ge=0)


class MonitorSettings(BaseModel):
    """Health monitor settings."""

    enabled: bool = True
    interval: float = Field(default=300.0, gt=0)
    batch_size: int = Field(default=5, ge=1)
    batch_delay: float = Field(default=1.0, ge=0)
    probe_timeout: float = Field(default=5.0, gt=0)
    require_range_support: bool = True


class SessionSettings(BaseModel):
    """Playback session settings."""

    preferred_quality: str = "auto"
    probe_on_start: bool = True
    buffer_target_sec: float = 30.0
    max_buffer_sec: float = 60.0
    max_max_buffer_sec: float = 600.0
    return_to_primary: bool = False
    bandwidth_change_threshold: float = Field(default=0.25, ge=0)


class AnalyticsSettings(BaseModel):
    """Analytics recorder settings."""

    enabled: bool = True
    endpoint: Optional[str] = None
    timeout: float = Field(default=5.0, gt=0)


class LoggingSettings(BaseModel):
    """structlog settings."""

    level: str = "INFO"
    json_output: bool = True
    debug_sample_rate: float = Field(default=0.0, ge=0, le=1)
    sampling_strategy: str = "random"
    operation_levels: dict[str, str] = Field(default_factory=dict)


class Settings(BaseSettings):
    """
    Main application settings with multi-environment support.

    Configuration hierarchy (lowest to highest precedence):
    1. settings/config.yaml (base)
    2. settings/config.{environment}.yaml (environment-specific)
    3. Environment variables (STREAM_*)

    Examples:
        Load settings:
        >>> settings = get_settings()
        >>> settings.monitor.interval
        300.0

        Override from the environment:
        $ STREAM_MONITOR__BATCH_SIZE=10 python -m myservice
    """

    model_config = SettingsConfigDict(
        env_prefix="STREAM_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    debug: bool = False

    http: HttpSettings = Field(default_factory=HttpSettings)
    prober: ProberSettings = Field(default_factory=ProberSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs; environment variables must win
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def load_from_yaml(cls, config_path: Path | None = None) -> "Settings":
        """
        Load settings from a YAML configuration file.

        Args:
            config_path: Path to config file (default: $STREAM_CONFIG_FILE or
                settings/config.yaml in the project root)

        Returns:
            Settings instance
        """
        if config_path is None:
            env_path = os.getenv("STREAM_CONFIG_FILE")
            if env_path:
                config_path = Path(env_path)
            else:
                # settings.py lives in src/stream_delivery/
                project_root = Path(__file__).parent.parent.parent
                config_path = project_root / "settings" / "config.yaml"

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        env = os.getenv("STREAM_ENVIRONMENT", config_data.get("environment", "development"))
        env_config_path = config_path.parent / f"config.{env}.yaml"

        if env_config_path.exists():
            with open(env_config_path) as f:
                env_config = yaml.safe_load(f) or {}
                config_data = cls._deep_merge(config_data, env_config)

        return cls(**config_data)

    @staticmethod
    def _deep_merge(base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = Settings._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def section(self, name: str) -> dict[str, Any]:
        """Return one settings section as a plain dictionary."""
        value = getattr(self, name)
        return value.model_dump() if isinstance(value, BaseModel) else dict(value)


@lru_cache
def get_settings(config_path: Path | None = None) -> Settings:
    """
    Get cached settings instance.

    Args:
        config_path: Optional path to config file

    Returns:
        Settings instance
    """
    return Settings.load_from_yaml(config_path)


def reload_settings() -> Settings:
    """Reload settings by clearing cache."""
    get_settings.cache_clear()
    return get_settings()


__all__ = [
    "Settings",
    "HttpSettings",
    "ProberSettings",
    "MonitorSettings",
    "SessionSettings",
    "AnalyticsSettings",
    "LoggingSettings",
    "get_settings",
    "reload_settings",
]
