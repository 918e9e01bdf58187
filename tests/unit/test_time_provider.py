"""Unit tests for time providers."""

import pytest

from stream_delivery.time_provider import (
    RealtimeTimeProvider,
    SimulatedTimeProvider,
    TimeProvider,
    create_time_provider,
)


class TestRealtimeTimeProvider:
    """Test RealtimeTimeProvider (wall-clock time)."""

    def test_now_returns_time(self):
        """Test that now() returns current time."""
        provider = RealtimeTimeProvider()
        t1 = provider.now()
        t2 = provider.now()

        assert isinstance(t1, float)
        assert t2 >= t1

    @pytest.mark.asyncio
    async def test_sleep(self):
        """Test async sleep with realtime provider."""
        provider = RealtimeTimeProvider()

        start = provider.now()
        await provider.sleep(0.05)

        assert provider.elapsed_time(start) >= 0.04

    def test_mode(self):
        assert RealtimeTimeProvider().get_mode() == "realtime"


class TestSimulatedTimeProvider:
    """Test SimulatedTimeProvider (virtual time)."""

    def test_creation(self):
        provider = SimulatedTimeProvider(initial_time=100.0)

        assert provider.now() == 100.0
        assert provider.speed == 1.0
        assert provider.get_mode() == "simulated"

    def test_invalid_speed(self):
        with pytest.raises(ValueError):
            SimulatedTimeProvider(speed=0)

        provider = SimulatedTimeProvider()
        with pytest.raises(ValueError):
            provider.set_speed(-1)

    @pytest.mark.asyncio
    async def test_sleep_advances_virtual_time(self):
        """Test sleep is instant and recorded."""
        provider = SimulatedTimeProvider(initial_time=0.0)

        await provider.sleep(300)
        await provider.sleep(1.5)

        assert provider.now() == 301.5
        assert provider.sleeps == [300, 1.5]

    @pytest.mark.asyncio
    async def test_speed_multiplier(self):
        provider = SimulatedTimeProvider(speed=2.0)

        await provider.sleep(10)

        assert provider.now() == 20.0

    def test_advance(self):
        provider = SimulatedTimeProvider(initial_time=10.0)

        provider.advance(5)

        assert provider.elapsed_time(10.0) == 5.0
        assert provider.sleeps == []


class TestFactory:
    def test_create_time_provider(self):
        assert isinstance(create_time_provider(), RealtimeTimeProvider)
        simulated = create_time_provider("simulated", initial_time=5.0)
        assert isinstance(simulated, SimulatedTimeProvider)
        assert simulated.now() == 5.0
        assert isinstance(simulated, TimeProvider)
