"""
Format-specific reachability probes.

Each stream format is checked with the strategy that proves a source is
actually playable:

- segmented formats (HLS, DASH) fetch the manifest and look for a marker
- progressive formats (MP4, TS) send a one-byte ranged HEAD
- unknown formats fall back to a plain HEAD

Strategies are registered per format in a ``ProbeRegistry``; supporting a new
format is one ``register()`` call.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from .exceptions import ProbeError, ProbeTimeoutError
from .log_config import get_context_logger
from .prober import NO_CACHE_HEADERS
from .types import StreamFormat


HLS_MARKERS = ("#EXTM3U", "#EXT-X-VERSION")
DASH_MARKERS = ("<MPD",)

# Manifests put their marker at the top; don't scan whole playlists
_SNIFF_CHARS = 4096


class ProbeStrategy(ABC):
    """
    Base class for reachability checks.

    Subclasses implement ``check()``, which raises ``ProbeError`` when the
    source is not playable. ``run()`` adds the strategy's own timeout.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self.logger = get_context_logger(f"probe.{self.__class__.__name__}")

    @abstractmethod
    async def check(self, client: httpx.AsyncClient, url: str) -> None:
        """Raise ``ProbeError`` unless ``url`` answers like a playable source."""
        pass

    async def run(self, client: httpx.AsyncClient, url: str) -> None:
        """
        Run ``check()`` under this strategy's timeout.

        Raises:
            ProbeTimeoutError: If the check did not finish in time
            ProbeError: If the source is unreachable or not playable
        """
        try:
            await asyncio.wait_for(self.check(client, url), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProbeTimeoutError("Probe timed out", url=url, timeout=self.timeout) from e
        except httpx.HTTPError as e:
            raise ProbeError(f"Request failed: {type(e).__name__}", url=url) from e

    def get_identifier(self) -> str:
        return self.__class__.__name__

    @staticmethod
    def _require_success(response: httpx.Response, url: str) -> None:
        if not response.is_success:
            raise ProbeError(
                f"Unexpected HTTP status {response.status_code}",
                url=url,
                http_status=response.status_code,
            )


class ManifestSniffProbe(ProbeStrategy):
    """GET the manifest and require one of ``markers`` near the top of the body."""

    def __init__(self, markers: Iterable[str] = HLS_MARKERS, timeout: float = 5.0):
        super().__init__(timeout)
        self.markers = tuple(markers)

    async def check(self, client: httpx.AsyncClient, url: str) -> None:
        response = await client.get(url, headers=NO_CACHE_HEADERS)
        self._require_success(response, url)
        head = response.text[:_SNIFF_CHARS]
        if not any(marker in head for marker in self.markers):
            raise ProbeError(
                "Manifest marker not found",
                url=url,
                context={"markers": ",".join(self.markers)},
            )

    def get_identifier(self) -> str:
        return f"ManifestSniffProbe({'|'.join(self.markers)})"


class RangeHeadProbe(ProbeStrategy):
    """HEAD with ``Range: bytes=0-0``.

    With ``require_range_support`` the response must also carry
    ``Accept-Ranges`` or ``Content-Range``, which progressive playback needs
    for seeking.
    """

    def __init__(self, require_range_support: bool = True, timeout: float = 5.0):
        super().__init__(timeout)
        self.require_range_support = require_range_support

    async def check(self, client: httpx.AsyncClient, url: str) -> None:
        response = await client.head(url, headers={"Range": "bytes=0-0", **NO_CACHE_HEADERS})
        self._require_success(response, url)
        if self.require_range_support and not (
            "accept-ranges" in response.headers or "content-range" in response.headers
        ):
            raise ProbeError("Source does not support byte ranges", url=url,
                             http_status=response.status_code)


class LenientHeadProbe(ProbeStrategy):
    """Plain HEAD; any 2xx counts as reachable."""

    async def check(self, client: httpx.AsyncClient, url: str) -> None:
        response = await client.head(url, headers=NO_CACHE_HEADERS)
        self._require_success(response, url)


@dataclass(frozen=True)
class FormatProbe:
    """Registry entry binding a stream format to its probe strategy."""

    format: str
    strategy: ProbeStrategy


class ProbeRegistry:
    """
    Format to strategy lookup with a lenient fallback.

    Examples:
        >>> registry = ProbeRegistry.default(timeout=5.0)
        >>> registry.get("hls").get_identifier()
        'ManifestSniffProbe(#EXTM3U|#EXT-X-VERSION)'
        >>> registry.register(FormatProbe("webm", RangeHeadProbe(timeout=5.0)))
        >>> isinstance(registry.get("flv"), LenientHeadProbe)
        True
    """

    def __init__(self, fallback: Optional[ProbeStrategy] = None):
        self._probes: dict[str, FormatProbe] = {}
        self.fallback = fallback or LenientHeadProbe()

    @classmethod
    def default(cls, timeout: float = 5.0, require_range_support: bool = True) -> "ProbeRegistry":
        """Registry with the built-in HLS, DASH, MP4 and TS probes."""
        registry = cls(fallback=LenientHeadProbe(timeout=timeout))
        registry.register(FormatProbe(
            StreamFormat.HLS.value, ManifestSniffProbe(HLS_MARKERS, timeout=timeout)))
        registry.register(FormatProbe(
            StreamFormat.DASH.value, ManifestSniffProbe(DASH_MARKERS, timeout=timeout)))
        for fmt in (StreamFormat.MP4, StreamFormat.TS):
            registry.register(FormatProbe(
                fmt.value, RangeHeadProbe(require_range_support, timeout=timeout)))
        return registry

    def register(self, probe: FormatProbe) -> None:
        """Add or replace the probe for ``probe.format``."""
        self._probes[probe.format.lower()] = probe

    def get(self, fmt: Optional[str]) -> ProbeStrategy:
        entry = self._probes.get((fmt or "").lower())
        return entry.strategy if entry else self.fallback

    @property
    def formats(self) -> list[str]:
        return sorted(self._probes)


__all__ = [
    "HLS_MARKERS",
    "DASH_MARKERS",
    "ProbeStrategy",
    "ManifestSniffProbe",
    "RangeHeadProbe",
    "LenientHeadProbe",
    "FormatProbe",
    "ProbeRegistry",
]
