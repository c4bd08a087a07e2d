"""Stale-while-revalidate coordination with per-key background refreshes.

A :class:`RefreshCoordinator` sits in front of one cache ("store") and answers
reads from it immediately.  When the stored value is stale or missing it
starts ONE background refresh for that key and tells the caller so through
``refresh_pending``; the caller never waits for upstream.

# ─── STATE MACHINE PER KEY ────────────────────────────────────────────
#
#   Fresh ──ttl elapses──→ Stale ──resolve()──→ Refreshing
#     ↑                                            │
#     └──────────── fetcher returned a value ──────┤
#                                                  │
#   Stale / Cold ←── fetcher returned None, ───────┘
#                    or raised (logged only)
#
#   resolve() while Refreshing → same stale read, no second refresh.
#   The in-flight mark is cleared in a ``finally`` block, so a failed
#   refresh never blocks the next one.
# ──────────────────────────────────────────────────────────────────────

Listeners registered with :meth:`RefreshCoordinator.register_listener` are
invoked with ``(key, value)`` after every successful refresh.  Both sync and
async callbacks are supported; a listener that raises is logged and skipped.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import structlog

from src.interfaces.cache_provider import ICacheProvider
from src.models.refresh import RefreshKey, Resolution
from src.utils.logging import get_logger

T = TypeVar("T")

Fetcher = Callable[[], Awaitable[Any]]
RefreshListener = Callable[[RefreshKey, Any], Any]


class RefreshCoordinator(Generic[T]):
    """Serve cached values and refresh stale ones in the background.

    Parameters
    ----------
    name:
        Identifier used in log records and task names.
    store:
        Cache holding the refreshed values.  Its TTL defines freshness.
    """

    def __init__(self, name: str, store: ICacheProvider[T]) -> None:
        self.name = name
        self._store = store
        self._in_flight: set[RefreshKey] = set()
        # Strong references: the event loop only keeps weak ones to tasks.
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[RefreshListener] = []
        self._logger: structlog.BoundLogger = get_logger(__name__).bind(coordinator=name)

    @property
    def store(self) -> ICacheProvider[T]:
        return self._store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, key: RefreshKey, fetcher: Callable[[], Awaitable[T | None]]) -> Resolution[T]:
        """Return the best value available now, refreshing in the background if needed.

        Must be called from within a running event loop.  *fetcher* is
        never awaited here.

        Parameters
        ----------
        key:
            Identity of the refreshable resource.
        fetcher:
            Zero-argument coroutine function producing a fresh value, or
            ``None`` when upstream has nothing for the key.

        Returns
        -------
        Resolution[T]
            ``(value, False)`` when fresh; otherwise the stale value (or
            ``None`` for a cold key) with ``refresh_pending=True``.
        """
        cache_key = key.cache_key()

        value, is_fresh = self._store.lookup(cache_key)
        if is_fresh and value is not None:
            self._logger.debug("swr_resolved", key=cache_key, outcome="fresh")
            return Resolution(value=value, refresh_pending=False)

        spawned = self.trigger(key, fetcher)
        self._logger.debug(
            "swr_resolved",
            key=cache_key,
            outcome="stale" if value is not None else "cold",
            refresh_started=spawned,
        )
        return Resolution(value=value, refresh_pending=True)

    def trigger(self, key: RefreshKey, fetcher: Callable[[], Awaitable[T | None]]) -> bool:
        """Start a background refresh for *key* unless one is already running.

        Freshness is not consulted; schedulers use this to refresh ahead of
        expiry.  Returns ``True`` when a new refresh was started.
        """
        if key in self._in_flight:
            self._logger.debug("refresh_deduplicated", key=key.cache_key())
            return False

        loop = asyncio.get_running_loop()
        self._in_flight.add(key)
        task = loop.create_task(
            self._refresh(key, fetcher),
            name=f"refresh:{self.name}:{key.cache_key()}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    def is_in_flight(self, key: RefreshKey) -> bool:
        return key in self._in_flight

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def register_listener(self, callback: RefreshListener) -> None:
        """Register a sync or async ``callback(key, value)`` for completed refreshes."""
        if callback not in self._listeners:
            self._listeners.append(callback)
            self._logger.debug("listener_registered", total_listeners=len(self._listeners))

    def unregister_listener(self, callback: RefreshListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)
            self._logger.debug("listener_unregistered", remaining_listeners=len(self._listeners))

    async def drain(self) -> None:
        """Wait until every outstanding refresh has finished.

        Used at shutdown.  Refreshes are not cancelled; listeners may start
        new ones, so this loops until none remain.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _refresh(self, key: RefreshKey, fetcher: Callable[[], Awaitable[T | None]]) -> None:
        cache_key = key.cache_key()
        started = time.perf_counter()
        try:
            value = await fetcher()
            if value is None:
                self._logger.info(
                    "refresh_no_result",
                    key=cache_key,
                    latency_ms=round((time.perf_counter() - started) * 1000, 1),
                )
                return

            self._store.set(cache_key, value)
            self._logger.info(
                "refresh_completed",
                key=cache_key,
                latency_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            await self._notify_listeners(key, value)
        except Exception as exc:
            self._logger.error(
                "refresh_failed",
                key=cache_key,
                error=str(exc),
                provider=getattr(exc, "provider_name", None),
                error_type=type(exc).__name__,
            )
        finally:
            self._in_flight.discard(key)

    async def _notify_listeners(self, key: RefreshKey, value: T) -> None:
        for callback in list(self._listeners):
            try:
                result = callback(key, value)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    key=key.cache_key(),
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
