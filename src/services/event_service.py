"""Event discovery with stale-while-revalidate semantics.

Artist events and followed-artist location searches are served from SWR
stores and refreshed in the background through :class:`EventFinder`.
General "explore" searches go straight to the finder: they are not tied to
any followed artist and are not worth keeping in an SWR store.

# ─── NEW-CONCERT NOTIFICATIONS ────────────────────────────────────────
#
#   artist-events refresh completes
#        │
#        ▼
#   EventService diffs the refreshed event ids against the ids of the
#   previous listing for that artist; any unseen ids are "new concerts"
#        │
#        ▼
#   every new-events listener is called with (artist_id, new_events)
#
# Listeners (the notification service) may be sync or async.  A listener
# that raises is logged and skipped.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Any

import structlog
from cachetools import LRUCache

from src.config.settings import Settings
from src.models.artist import Artist
from src.models.event import Event
from src.models.refresh import RefreshKey, Resolution
from src.providers.cache.ttl_cache import CacheStats, TTLCache
from src.services.event_finder import EventFinder
from src.services.refresh_coordinator import RefreshCoordinator
from src.utils.logging import get_logger

ARTIST_EVENTS_KIND = "artist-events"
LOCATION_EVENTS_KIND = "location-events"

_ARTIST_STORE_SIZE = 500
_LOCATION_STORE_SIZE = 150

NewEventsListener = Callable[[str, list[Event]], Any]


class EventService:
    """Serve concert listings without ever waiting on Ticketmaster.

    Parameters
    ----------
    finder:
        Domain-level event lookups (Ticketmaster behind two cache layers).
    settings:
        Supplies ``event_cache_ttl`` and ``location_cache_max_ttl``.
    timer:
        Clock for the SWR stores.
    """

    def __init__(
        self,
        finder: EventFinder,
        settings: Settings,
        *,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._finder = finder
        store_options = {
            "stats_interval": settings.cache_stats_interval,
            "sweep_interval": settings.cache_sweep_interval,
            "timer": timer,
        }
        self._artist_store: TTLCache[list[Event]] = TTLCache(
            "swr-artist-events", settings.event_cache_ttl, _ARTIST_STORE_SIZE, **store_options
        )
        self._location_store: TTLCache[list[Event]] = TTLCache(
            "swr-location-events",
            min(settings.event_cache_ttl, settings.location_cache_max_ttl),
            _LOCATION_STORE_SIZE,
            **store_options,
        )
        self._artist_events: RefreshCoordinator[list[Event]] = RefreshCoordinator(
            ARTIST_EVENTS_KIND, self._artist_store
        )
        self._location_events: RefreshCoordinator[list[Event]] = RefreshCoordinator(
            LOCATION_EVENTS_KIND, self._location_store
        )

        # Ids from the latest listing per artist, bounded like the artist store.
        self._known_event_ids: LRUCache = LRUCache(maxsize=_ARTIST_STORE_SIZE)
        self._new_events_listeners: list[NewEventsListener] = []
        self._artist_events.register_listener(self._on_artist_events_refreshed)

        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def coordinators(self) -> tuple[RefreshCoordinator[list[Event]], ...]:
        return (self._artist_events, self._location_events)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_artist_events(self, artist: Artist) -> Resolution[list[Event]]:
        """Upcoming events for *artist*; stale or missing lists refresh in the background."""
        return self._artist_events.resolve(
            RefreshKey(ARTIST_EVENTS_KIND, artist.mbid),
            self._artist_events_fetcher(artist),
        )

    def search_events_near(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        artists: Sequence[Artist] | None = None,
    ) -> Resolution[list[Event]]:
        """Events near a point for the given artists (all artists when empty)."""
        key = RefreshKey(
            LOCATION_EVENTS_KIND,
            self._finder.location_key(latitude, longitude, radius_km, artists),
        )
        selected = list(artists or ())

        async def fetch() -> list[Event] | None:
            events = await self._finder.find_near_location(
                latitude, longitude, radius_km, selected
            )
            return events or None

        return self._location_events.resolve(key, fetch)

    async def explore_events(
        self, latitude: float, longitude: float, radius_km: float
    ) -> list[Event]:
        """All music events near a point.  Awaits the finder directly."""
        return await self._finder.find_near_location(latitude, longitude, radius_km)

    def get_event_by_id(self, event_id: str) -> Event | None:
        return self._finder.find_by_id(event_id)

    # ------------------------------------------------------------------
    # Scheduler & notification hooks
    # ------------------------------------------------------------------

    def refresh_stale_artists(self, artists: Sequence[Artist]) -> int:
        """Start background refreshes for artists whose events are not fresh.

        Returns the number of refreshes started.  Artists already being
        refreshed are skipped.
        """
        started = 0
        for artist in artists:
            key = RefreshKey(ARTIST_EVENTS_KIND, artist.mbid)
            if self._artist_store.has(key.cache_key()):
                continue
            if self._artist_events.trigger(key, self._artist_events_fetcher(artist)):
                started += 1

        self._logger.info(
            "stale_artist_refresh_scheduled", requested=len(artists), started=started
        )
        return started

    def register_new_events_listener(self, callback: NewEventsListener) -> None:
        """Register ``callback(artist_id, new_events)`` for newly discovered concerts."""
        if callback not in self._new_events_listeners:
            self._new_events_listeners.append(callback)

    def unregister_new_events_listener(self, callback: NewEventsListener) -> None:
        if callback in self._new_events_listeners:
            self._new_events_listeners.remove(callback)

    # ------------------------------------------------------------------
    # Lifecycle & observability
    # ------------------------------------------------------------------

    def cache_stats(self) -> dict[str, CacheStats]:
        return {
            store.name: store.stats() for store in (self._artist_store, self._location_store)
        }

    async def drain(self) -> None:
        for coordinator in self.coordinators:
            await coordinator.drain()

    async def close(self) -> None:
        await self._artist_store.close()
        await self._location_store.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _artist_events_fetcher(self, artist: Artist) -> Callable[[], Any]:
        async def fetch() -> list[Event] | None:
            events = await self._finder.find_by_artist(artist, upcoming=True)
            return events or None

        return fetch

    async def _on_artist_events_refreshed(self, key: RefreshKey, events: list[Event]) -> None:
        artist_id = key.key
        known: frozenset[str] = self._known_event_ids.get(artist_id, frozenset())
        new_events = [event for event in events if event.external_id not in known]
        self._known_event_ids[artist_id] = frozenset(event.external_id for event in events)

        if not new_events:
            return

        self._logger.info("new_events_found", artist_id=artist_id, count=len(new_events))
        for callback in list(self._new_events_listeners):
            try:
                result = callback(artist_id, new_events)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "new_events_listener_error",
                    artist_id=artist_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
