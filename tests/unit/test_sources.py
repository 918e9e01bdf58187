"""Unit tests for stream sources and source sets."""

import pytest

from stream_delivery.exceptions import MalformedSourceError
from stream_delivery.sources import SourceSet, sort_sources
from stream_delivery.types import (
    DEFAULT_PRIORITY,
    TEST_SOURCE_PRIORITY,
    ContentType,
    QualityLevel,
    StreamSource,
)


class TestStreamSource:
    """Test StreamSource.from_dict normalization."""

    def test_full_record(self):
        """Test a record with every optional field."""
        source = StreamSource.from_dict({
            "url": " https://cdn.example/live.m3u8 ",
            "priority": "2",
            "format": "HLS",
            "label": "Backup",
            "resolution": "720",
            "declaredBandwidthKbps": 3500,
        })

        assert source.url == "https://cdn.example/live.m3u8"
        assert source.priority == 2
        assert source.format == "hls"
        assert source.label == "Backup"
        assert source.resolution is QualityLevel.P720
        assert source.bandwidth_kbps == 3500
        assert source.ephemeral is False

    def test_defaults(self):
        """Test that missing priority sorts last and format defaults to hls."""
        source = StreamSource.from_dict({"url": "https://cdn.example/a.m3u8"})

        assert source.priority == DEFAULT_PRIORITY
        assert source.format == "hls"
        assert source.resolution is None
        assert source.bandwidth_kbps is None

    def test_alternate_keys(self):
        """Test quality and bandwidth aliases."""
        source = StreamSource.from_dict(
            {"url": "https://cdn.example/a.mp4", "quality": "1080p", "bandwidth": "6000"}
        )

        assert source.resolution is QualityLevel.P1080
        assert source.bandwidth_kbps == 6000

    @pytest.mark.parametrize(
        "raw",
        [
            "https://cdn.example/a.m3u8",
            None,
            {"priority": 1},
            {"url": ""},
            {"url": 42},
            {"url": "https://cdn.example/a.m3u8", "priority": "first"},
        ],
    )
    def test_malformed_records(self, raw):
        """Test records that cannot be played."""
        with pytest.raises(MalformedSourceError):
            StreamSource.from_dict(raw)

    def test_to_dict_omits_empty_fields(self):
        """Test catalog serialization."""
        source = StreamSource("https://cdn.example/a.m3u8", priority=1)

        assert source.to_dict() == {
            "url": "https://cdn.example/a.m3u8",
            "priority": 1,
            "format": "hls",
        }


class TestSortSources:
    """Test priority ordering."""

    def test_ascending_priority(self):
        """Test lower priority numbers come first."""
        sources = [
            StreamSource("https://c", priority=3),
            StreamSource("https://a", priority=1),
            StreamSource("https://b", priority=2),
        ]

        assert [s.url for s in sort_sources(sources)] == ["https://a", "https://b", "https://c"]

    def test_stable_for_equal_priorities(self):
        """Test sources sharing a priority keep their input order."""
        sources = [
            StreamSource("https://x", priority=5),
            StreamSource("https://first", priority=1),
            StreamSource("https://y", priority=5),
            StreamSource("https://z", priority=5),
        ]

        ordered = sort_sources(sources)

        assert [s.url for s in ordered] == [
            "https://first", "https://x", "https://y", "https://z",
        ]

    def test_does_not_modify_input(self):
        """Test the input list is left alone."""
        sources = [StreamSource("https://b", priority=2), StreamSource("https://a", priority=1)]

        sort_sources(sources)

        assert sources[0].url == "https://b"


class TestSourceSet:
    """Test SourceSet construction and derived sets."""

    def test_from_raw_sorts_and_drops_malformed(self):
        """Test malformed entries are dropped, the rest sorted."""
        sources = SourceSet.from_raw(
            [
                {"url": "https://b/live.m3u8", "priority": 2},
                {"priority": 0},
                "not-a-record",
                {"url": "https://a/live.m3u8", "priority": 1},
            ],
            (ContentType.CHANNEL, 7),
        )

        assert len(sources) == 2
        assert [s.url for s in sources] == ["https://a/live.m3u8", "https://b/live.m3u8"]
        assert sources.primary.url == "https://a/live.m3u8"

    @pytest.mark.parametrize("raw", [None, "[]", {"url": "https://a"}, 17])
    def test_from_raw_non_list_is_empty(self, raw):
        """Test payloads that are not lists behave like zero sources."""
        sources = SourceSet.from_raw(raw)

        assert len(sources) == 0
        assert not sources
        assert sources.primary is None

    def test_with_test_source(self):
        """Test the test source goes first and the receiver is untouched."""
        sources = SourceSet.from_raw([
            {"url": "https://a/live.m3u8", "priority": 0},
            {"url": "https://b/live.m3u8", "priority": 1},
        ])

        with_test = sources.with_test_source("https://lab/test.m3u8")

        assert len(with_test) == 3
        assert with_test[0].url == "https://lab/test.m3u8"
        assert with_test[0].ephemeral is True
        assert with_test[0].priority == TEST_SOURCE_PRIORITY
        assert with_test[0].label == "Test Stream"
        assert len(sources) == 2
        assert sources.primary.url == "https://a/live.m3u8"

    def test_to_list_excludes_ephemeral(self):
        """Test the test source never reaches the persisted list."""
        sources = SourceSet.from_raw([{"url": "https://a/live.m3u8", "priority": 1}])

        persisted = sources.with_test_source("https://lab/test.m3u8").to_list()

        assert persisted == [{"url": "https://a/live.m3u8", "priority": 1, "format": "hls"}]

    def test_tier(self):
        """Test tier lookup by shared priority."""
        sources = SourceSet([
            StreamSource("https://a", priority=1),
            StreamSource("https://b", priority=2),
            StreamSource("https://c", priority=2),
            StreamSource("https://d", priority=3),
        ])

        assert sources.tier(0) == [0]
        assert sources.tier(1) == [1, 2]
        assert sources.tier(2) == [1, 2]

    def test_reordered_within_tier(self):
        """Test swapping two sources of the same priority."""
        sources = SourceSet([
            StreamSource("https://a", priority=1),
            StreamSource("https://b", priority=1),
        ])

        swapped = sources.reordered([1, 0])

        assert [s.url for s in swapped] == ["https://b", "https://a"]
        assert [s.url for s in sources] == ["https://a", "https://b"]

    def test_reordered_rejects_priority_inversion(self):
        """Test reordering across tiers is rejected."""
        sources = SourceSet([
            StreamSource("https://a", priority=1),
            StreamSource("https://b", priority=2),
        ])

        with pytest.raises(ValueError, match="non-decreasing"):
            sources.reordered([1, 0])

        with pytest.raises(ValueError, match="permutation"):
            sources.reordered([0, 0])

    def test_copy_is_equal(self):
        """Test private copies compare equal to the original."""
        sources = SourceSet([StreamSource("https://a", priority=1)])

        assert sources.copy() == sources
        assert hash(sources.copy()) == hash(sources)
