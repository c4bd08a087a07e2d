"""Unit tests for RefreshCoordinator (stale-while-revalidate)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.models.refresh import RefreshKey, Resolution
from src.providers.cache.ttl_cache import TTLCache
from src.services.refresh_coordinator import RefreshCoordinator
from src.utils.errors import ProviderUnavailableError
from tests.conftest import FakeClock, TickingClock

_KEY = RefreshKey("artist-mbid", "abc")


def _coordinator(clock: FakeClock, ttl: float = 60.0) -> RefreshCoordinator[str]:
    store: TTLCache[str] = TTLCache("swr-test", ttl, 100, stats_interval=0, timer=clock)
    return RefreshCoordinator("test", store)


class TestResolve:
    @pytest.mark.asyncio
    async def test_cold_key_returns_none_and_refreshes(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        fetcher = AsyncMock(return_value="fresh")

        first = coordinator.resolve(_KEY, fetcher)
        assert first == Resolution(value=None, refresh_pending=True)
        assert coordinator.is_in_flight(_KEY)

        await coordinator.drain()

        assert not coordinator.is_in_flight(_KEY)
        second = coordinator.resolve(_KEY, fetcher)
        assert second == Resolution(value="fresh", refresh_pending=False)
        fetcher.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fresh_value_served_without_refresh(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        coordinator.store.set(_KEY.cache_key(), "cached")
        fetcher = AsyncMock(return_value="new")

        result = coordinator.resolve(_KEY, fetcher)

        assert result == Resolution(value="cached", refresh_pending=False)
        assert coordinator.in_flight_count == 0
        fetcher.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_value_served_while_refreshing(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock, ttl=60)
        coordinator.store.set(_KEY.cache_key(), "old")
        clock.advance(61)
        fetcher = AsyncMock(return_value="new")

        result = coordinator.resolve(_KEY, fetcher)
        assert result == Resolution(value="old", refresh_pending=True)

        await coordinator.drain()
        assert coordinator.resolve(_KEY, fetcher) == Resolution(value="new", refresh_pending=False)

    @pytest.mark.asyncio
    async def test_concurrent_resolves_share_one_refresh(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock, ttl=60)
        coordinator.store.set(_KEY.cache_key(), "old")
        clock.advance(61)

        release = asyncio.Event()
        calls = 0

        async def slow_fetch() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "new"

        results = [coordinator.resolve(_KEY, slow_fetch) for _ in range(10)]
        await asyncio.sleep(0)

        assert all(r == Resolution(value="old", refresh_pending=True) for r in results)
        assert coordinator.in_flight_count == 1

        release.set()
        await coordinator.drain()
        assert calls == 1

    @pytest.mark.asyncio
    async def test_resolve_never_awaits_fetcher(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        started = asyncio.Event()

        async def fetch() -> str:
            started.set()
            await asyncio.sleep(3600)
            return "never"

        coordinator.resolve(_KEY, fetch)
        assert not started.is_set()

        await asyncio.sleep(0)
        assert started.is_set()
        for task in list(coordinator._tasks):
            task.cancel()
        await asyncio.gather(*coordinator._tasks, return_exceptions=True)

    def test_resolve_outside_event_loop_raises(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        with pytest.raises(RuntimeError):
            coordinator.resolve(_KEY, AsyncMock(return_value="x"))
        assert not coordinator.is_in_flight(_KEY)

    @pytest.mark.asyncio
    async def test_distinct_kinds_do_not_deduplicate(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        fetcher = AsyncMock(return_value="v")

        coordinator.resolve(RefreshKey("artist-mbid", "x"), fetcher)
        coordinator.resolve(RefreshKey("artist-events", "x"), fetcher)

        assert coordinator.in_flight_count == 2
        await coordinator.drain()
        assert fetcher.await_count == 2

    @pytest.mark.asyncio
    async def test_value_at_exact_expiry_is_never_dropped(self) -> None:
        clock = TickingClock(start=0.0)
        coordinator = _coordinator(clock, ttl=10)
        coordinator.store.set(_KEY.cache_key(), "old")
        clock.now = 10.0
        release = asyncio.Event()

        async def blocked_fetch() -> str:
            await release.wait()
            return "new"

        assert coordinator.resolve(_KEY, blocked_fetch) == Resolution(
            value="old", refresh_pending=False
        )
        assert coordinator.resolve(_KEY, blocked_fetch) == Resolution(
            value="old", refresh_pending=True
        )
        assert coordinator.store.get_stale(_KEY.cache_key()) == "old"

        release.set()
        await coordinator.drain()
        assert coordinator.store.get_stale(_KEY.cache_key()) == "new"


class TestRefreshOutcomes:
    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_stale_value_and_clears_flag(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock, ttl=60)
        coordinator.store.set(_KEY.cache_key(), "old")
        clock.advance(61)

        failing = AsyncMock(side_effect=RuntimeError("upstream down"))
        coordinator.resolve(_KEY, failing)
        await coordinator.drain()

        assert not coordinator.is_in_flight(_KEY)
        assert coordinator.store.get_stale(_KEY.cache_key()) == "old"

        recovering = AsyncMock(return_value="new")
        result = coordinator.resolve(_KEY, recovering)
        assert result == Resolution(value="old", refresh_pending=True)
        await coordinator.drain()
        recovering.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_refresh_logs_upstream_error(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        failing = AsyncMock(
            side_effect=ProviderUnavailableError("down", provider_name="ticketmaster")
        )

        with patch.object(coordinator, "_logger") as logger:
            coordinator.resolve(_KEY, failing)
            await coordinator.drain()

        logger.error.assert_called_once_with(
            "refresh_failed",
            key=_KEY.cache_key(),
            error="[ticketmaster] down",
            provider="ticketmaster",
            error_type="ProviderUnavailableError",
        )

    @pytest.mark.asyncio
    async def test_none_result_leaves_key_cold(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        coordinator.resolve(_KEY, AsyncMock(return_value=None))
        await coordinator.drain()

        assert coordinator.store.get_stale(_KEY.cache_key()) is None
        assert coordinator.resolve(_KEY, AsyncMock(return_value=None)).refresh_pending is True
        await coordinator.drain()


class TestTrigger:
    @pytest.mark.asyncio
    async def test_trigger_refreshes_fresh_key(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        coordinator.store.set(_KEY.cache_key(), "old")

        assert coordinator.trigger(_KEY, AsyncMock(return_value="new")) is True
        await coordinator.drain()
        assert coordinator.store.get(_KEY.cache_key()) == "new"

    @pytest.mark.asyncio
    async def test_trigger_deduplicates(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        release = asyncio.Event()

        async def fetch() -> str:
            await release.wait()
            return "v"

        assert coordinator.trigger(_KEY, fetch) is True
        assert coordinator.trigger(_KEY, fetch) is False
        release.set()
        await coordinator.drain()
        assert coordinator.trigger(_KEY, fetch) is True
        await coordinator.drain()


class TestListeners:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners_notified(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        sync_listener = MagicMock()
        async_listener = AsyncMock()
        coordinator.register_listener(sync_listener)
        coordinator.register_listener(async_listener)

        coordinator.resolve(_KEY, AsyncMock(return_value="v"))
        await coordinator.drain()

        sync_listener.assert_called_once_with(_KEY, "v")
        async_listener.assert_awaited_once_with(_KEY, "v")

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        bad = MagicMock(side_effect=ValueError("listener bug"))
        good = MagicMock()
        coordinator.register_listener(bad)
        coordinator.register_listener(good)

        coordinator.resolve(_KEY, AsyncMock(return_value="v"))
        await coordinator.drain()

        good.assert_called_once()
        assert coordinator.store.get(_KEY.cache_key()) == "v"

    @pytest.mark.asyncio
    async def test_unregistered_listener_not_called(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        listener = MagicMock()
        coordinator.register_listener(listener)
        coordinator.register_listener(listener)
        coordinator.unregister_listener(listener)

        coordinator.resolve(_KEY, AsyncMock(return_value="v"))
        await coordinator.drain()

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_listeners_not_called_without_result(self, clock: FakeClock) -> None:
        coordinator = _coordinator(clock)
        listener = MagicMock()
        coordinator.register_listener(listener)

        coordinator.resolve(_KEY, AsyncMock(return_value=None))
        await coordinator.drain()

        listener.assert_not_called()
