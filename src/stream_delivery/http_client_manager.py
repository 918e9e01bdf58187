"""HTTP client manager for connection pooling and lifecycle management."""

from typing import Any, Optional

import httpx

from .settings import get_settings


# Pooled clients keyed by (kind, config) tuple
_http_clients: dict[tuple[Any, ...], httpx.AsyncClient] = {}

_KIND_DEFAULTS: dict[str, dict[str, Any]] = {
    # Probes hit many hosts once per cycle; keep more connections, short timeout
    "probe": {"timeout": 5.0, "max_connections": 50, "max_keepalive_connections": 20},
    "analytics": {"timeout": 5.0, "max_connections": 10, "max_keepalive_connections": 5},
}


class HttpClientManager:
    """
    Owns the probe and analytics clients of one application.

    Examples:
        >>> manager = HttpClientManager()
        >>> prober = NetworkProber(http_client=manager.get_probe_client())
        >>> ...
        >>> await manager.close()
    """

    def __init__(self):
        self._probe_client: Optional[httpx.AsyncClient] = None
        self._analytics_client: Optional[httpx.AsyncClient] = None

    def get_probe_client(self) -> httpx.AsyncClient:
        """Get or create the client used by the prober and health probes."""
        if self._probe_client is None:
            self._probe_client = _build_client(_load_http_config("probe"))
        return self._probe_client

    def get_analytics_client(self) -> httpx.AsyncClient:
        """Get or create the client used by analytics sinks."""
        if self._analytics_client is None:
            self._analytics_client = _build_client(_load_http_config("analytics"))
        return self._analytics_client

    async def close(self) -> None:
        """Close all HTTP clients."""
        if self._probe_client:
            await self._probe_client.aclose()
            self._probe_client = None
        if self._analytics_client:
            await self._analytics_client.aclose()
            self._analytics_client = None


_manager: Optional[HttpClientManager] = None


def get_http_client_manager() -> HttpClientManager:
    """Get global HTTP client manager instance."""
    global _manager
    if _manager is None:
        _manager = HttpClientManager()
    return _manager


def _load_http_config(kind: str) -> dict[str, Any]:
    """Load HTTP client configuration for a client kind ("probe" or "analytics")."""
    http_cfg = get_settings().section("http")
    defaults = _KIND_DEFAULTS[kind]

    timeout = http_cfg.get("timeout", defaults["timeout"])
    if kind == "probe":
        # Probe clients never wait longer than a single probe is allowed to
        timeout = min(timeout, defaults["timeout"])

    return {
        "timeout": timeout,
        "max_connections": http_cfg.get("max_connections", defaults["max_connections"]),
        "max_keepalive_connections": http_cfg.get(
            "max_keepalive_connections", defaults["max_keepalive_connections"]
        ),
        "keepalive_expiry": http_cfg.get("keepalive_expiry", 5.0),
        "verify": http_cfg.get("verify_ssl", True),
        "follow_redirects": http_cfg.get("follow_redirects", True),
        "user_agent": http_cfg.get("user_agent"),
    }


def _client_cache_key(kind: str, cfg: dict[str, Any]) -> tuple[Any, ...]:
    """Build a cache key tuple from HTTP configuration."""
    return (kind, *(cfg.get(key) for key in sorted(cfg)))


def _build_client(cfg: dict[str, Any]) -> httpx.AsyncClient:
    headers = {"User-Agent": cfg["user_agent"]} if cfg.get("user_agent") else None
    return httpx.AsyncClient(
        timeout=cfg["timeout"],
        limits=httpx.Limits(
            max_keepalive_connections=cfg["max_keepalive_connections"],
            max_connections=cfg["max_connections"],
            keepalive_expiry=cfg["keepalive_expiry"],
        ),
        verify=cfg["verify"],
        follow_redirects=cfg["follow_redirects"],
        headers=headers,
    )


def _get_pooled_client(kind: str, overrides: dict[str, Any]) -> httpx.AsyncClient:
    cfg = _load_http_config(kind)
    cfg.update({k: v for k, v in overrides.items() if v is not None})

    key = _client_cache_key(kind, cfg)
    client = _http_clients.get(key)
    if client is None or client.is_closed:
        client = _build_client(cfg)
        _http_clients[key] = client
    return client


def get_probe_http_client(
    *,
    ssl_verify: bool | str | None = None,
    timeout: float | None = None,
    max_connections: int | None = None,
) -> httpx.AsyncClient:
    """Get the pooled HTTP client for reachability and bandwidth probes."""
    return _get_pooled_client(
        "probe",
        {"verify": ssl_verify, "timeout": timeout, "max_connections": max_connections},
    )


def get_analytics_http_client(
    *,
    ssl_verify: bool | str | None = None,
    timeout: float | None = None,
) -> httpx.AsyncClient:
    """Get the pooled HTTP client for analytics delivery."""
    return _get_pooled_client("analytics", {"verify": ssl_verify, "timeout": timeout})


async def close_pooled_clients() -> None:
    """Close and forget every pooled client."""
    clients = list(_http_clients.values())
    _http_clients.clear()
    for client in clients:
        await client.aclose()


__all__ = [
    "HttpClientManager",
    "get_http_client_manager",
    "get_probe_http_client",
    "get_analytics_http_client",
    "close_pooled_clients",
]
