"""
Catalog service interface.

The catalog owns content items and their health rows. This package only
reads items with their raw source lists and upserts ``status`` /
``last_checked_at``.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from .types import ChannelHealth, ContentItem, ContentType, HealthStatus


class CatalogService(ABC):
    """Abstract catalog collaborator."""

    @abstractmethod
    async def list_content(self) -> list[ContentItem]:
        """Every content item the health monitor should check."""
        pass

    @abstractmethod
    async def upsert_health(
        self,
        content_type: ContentType,
        content_id: int,
        status: HealthStatus,
        checked_at: float,
    ) -> ChannelHealth:
        """Create or update the health row of one item."""
        pass

    @abstractmethod
    async def get_health(
        self, content_type: ContentType, content_id: int
    ) -> Optional[ChannelHealth]:
        pass


class InMemoryCatalog(CatalogService):
    """
    Dictionary-backed catalog for tests and single-process deployments.

    Examples:
        >>> catalog = InMemoryCatalog([
        ...     ContentItem(ContentType.CHANNEL, 1, [{"url": "https://a/1.m3u8", "priority": 1}]),
        ... ])
        >>> await catalog.list_content()
    """

    def __init__(self, items: Iterable[ContentItem] = ()):
        self._items: dict[tuple[ContentType, int], ContentItem] = {}
        self._health: dict[tuple[ContentType, int], ChannelHealth] = {}
        self._lock = asyncio.Lock()
        for item in items:
            self.add(item)

    def add(self, item: ContentItem) -> None:
        self._items[item.ref] = item
        self._health.setdefault(item.ref, ChannelHealth(item.content_type, item.content_id))

    def add_raw(
        self, content_type: ContentType, content_id: int, sources: Any, name: Optional[str] = None
    ) -> ContentItem:
        """Add an item from its raw ``streamSources`` payload."""
        item = ContentItem(content_type, content_id, sources, name)
        self.add(item)
        return item

    async def list_content(self) -> list[ContentItem]:
        return list(self._items.values())

    async def upsert_health(
        self,
        content_type: ContentType,
        content_id: int,
        status: HealthStatus,
        checked_at: float,
    ) -> ChannelHealth:
        async with self._lock:
            key = (content_type, content_id)
            health = self._health.get(key)
            if health is None:
                health = ChannelHealth(content_type, content_id)
                self._health[key] = health
            health.status = status
            health.last_checked_at = checked_at
            return ChannelHealth(content_type, content_id, status, checked_at)

    async def get_health(
        self, content_type: ContentType, content_id: int
    ) -> Optional[ChannelHealth]:
        health = self._health.get((content_type, content_id))
        if health is None:
            return None
        return ChannelHealth(
            health.content_type, health.content_id, health.status, health.last_checked_at
        )

    def health_rows(self) -> list[ChannelHealth]:
        """Snapshot of every health row."""
        return [
            ChannelHealth(h.content_type, h.content_id, h.status, h.last_checked_at)
            for h in self._health.values()
        ]


__all__ = ["CatalogService", "InMemoryCatalog"]
