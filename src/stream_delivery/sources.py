"""
Source ordering and per-item source sets.

A ``SourceSet`` is the immutable, priority-ordered list of candidate sources
for one content item. Sessions take a private copy; the health monitor builds
one per check straight from raw catalog data.
"""

from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Optional

from .events import StreamEvents
from .exceptions import MalformedSourceError
from .log_config import get_context_logger
from .types import TEST_SOURCE_PRIORITY, StreamFormat, StreamSource


logger = get_context_logger("sources")


def sort_sources(sources: Iterable[StreamSource]) -> list[StreamSource]:
    """Return sources in ascending priority order.

    The sort is stable: sources sharing a priority keep their input order.
    """
    return sorted(sources, key=lambda source: source.priority)


class SourceSet(Sequence):
    """
    Priority-ordered, immutable sequence of stream sources.

    Examples:
        >>> sources = SourceSet.from_raw([
        ...     {"url": "https://b/live.m3u8", "priority": 2, "format": "hls"},
        ...     {"url": "https://a/live.m3u8", "priority": 1, "format": "hls"},
        ... ])
        >>> sources.primary.url
        'https://a/live.m3u8'
        >>> with_test = sources.with_test_source("https://lab/test.m3u8")
        >>> with_test[0].ephemeral, len(sources)
        (True, 2)
    """

    __slots__ = ("_sources",)

    def __init__(self, sources: Iterable[StreamSource] = ()):
        self._sources: tuple[StreamSource, ...] = tuple(sort_sources(sources))

    @classmethod
    def from_raw(cls, raw: Any, content_ref: Optional[tuple[Any, Any]] = None) -> "SourceSet":
        """
        Build a source set from catalog data.

        Malformed entries are dropped and logged. A payload that is not a list
        yields an empty set, which callers treat exactly like zero sources.

        Args:
            raw: The catalog ``streamSources`` value
            content_ref: Optional ``(type, id)`` used in log lines
        """
        content = f"{content_ref[0]}:{content_ref[1]}" if content_ref else None

        if not isinstance(raw, (list, tuple)):
            logger.warning(
                StreamEvents.SOURCE_MALFORMED,
                content=content,
                reason="stream sources is not a list",
                raw_type=type(raw).__name__,
            )
            return cls()

        sources: list[StreamSource] = []
        for position, entry in enumerate(raw):
            try:
                sources.append(StreamSource.from_dict(entry))
            except MalformedSourceError as e:
                logger.warning(
                    StreamEvents.SOURCE_MALFORMED,
                    content=content,
                    position=position,
                    error=str(e),
                )

        result = cls(sources)
        logger.debug(
            StreamEvents.SOURCES_LOADED,
            content=content,
            count=len(result),
            dropped=len(raw) - len(result),
        )
        return result

    @property
    def primary(self) -> Optional[StreamSource]:
        """Highest-priority source, or None for an empty set."""
        return self._sources[0] if self._sources else None

    def tier(self, index: int) -> list[int]:
        """Indices of all sources sharing the priority of ``sources[index]``."""
        priority = self._sources[index].priority
        return [i for i, source in enumerate(self._sources) if source.priority == priority]

    def with_test_source(
        self,
        url: str,
        format: str = StreamFormat.HLS.value,
        label: str = "Test Stream",
    ) -> "SourceSet":
        """
        Return a new set with an ephemeral test source forced to the front.

        The receiver is not modified, so the persisted ordering is untouched.
        """
        test_source = StreamSource(
            url=url,
            priority=TEST_SOURCE_PRIORITY,
            format=format,
            label=label,
            ephemeral=True,
        )
        logger.info(StreamEvents.SOURCE_TEST_INSERTED, url=url, format=format)
        return SourceSet((test_source, *self._sources))

    def copy(self) -> "SourceSet":
        """Private copy for a playback session."""
        clone = SourceSet.__new__(SourceSet)
        clone._sources = self._sources
        return clone

    def reordered(self, order: Sequence[int]) -> "SourceSet":
        """Copy with sources placed in the given index order.

        Used by sessions to move the chosen candidate of a priority tier to
        the front of that tier. ``order`` must be a permutation of the indices
        that keeps priorities non-decreasing.
        """
        if sorted(order) != list(range(len(self._sources))):
            raise ValueError("order must be a permutation of source indices")
        reordered = [self._sources[i] for i in order]
        if any(a.priority > b.priority for a, b in zip(reordered, reordered[1:])):
            raise ValueError("order must keep priorities non-decreasing")
        clone = SourceSet.__new__(SourceSet)
        clone._sources = tuple(reordered)
        return clone

    def to_list(self) -> list[dict[str, Any]]:
        return [source.to_dict() for source in self._sources if not source.ephemeral]

    def __getitem__(self, index):
        return self._sources[index]

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[StreamSource]:
        return iter(self._sources)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SourceSet):
            return self._sources == other._sources
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._sources)

    def __repr__(self) -> str:
        return f"SourceSet({list(self._sources)!r})"


__all__ = ["SourceSet", "sort_sources"]
