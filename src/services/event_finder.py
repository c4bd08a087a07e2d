"""Event lookups against Ticketmaster with a domain-level cache layer.

Two cache layers sit between a caller and Ticketmaster:

    1. HTTP layer   (TicketmasterProvider)  raw responses, short TTL
    2. Domain layer (EventFinder)           mapped, filtered Event lists

The domain layer keeps four caches:

    artist-events     artist MBID + upcoming flag   → list[Event]
    location-events   bucketed geo key              → list[Event]
    event-by-id       Ticketmaster event id         → Event
    attraction-ids    lower-cased artist name       → AttractionMatch

Every search that succeeds also indexes its events by id so single-event
lookups never need an upstream call.  When Ticketmaster fails, searches
return the last known list for the key, or ``[]``.

# ─── NEAR-LOCATION SEARCH FOR FOLLOWED ARTISTS ────────────────────────
#
#   1. resolve artist names → attraction ids   (3 at a time, cached 7 days)
#   2. resolved:    one geo search per attraction id (size 30)
#   3. unresolved:  one geo keyword search per artist name (size 20)
#   4. dedupe by external id, drop venues at (0, 0) and past events,
#      sort by date, keep the first 200
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from src.config.settings import Settings
from src.interfaces.event_provider import IEventProvider
from src.models.artist import Artist
from src.models.event import Event
from src.providers.cache.ttl_cache import CacheStats, TTLCache
from src.utils.concurrency import throttled_gather
from src.utils.errors import BandPulseError
from src.utils.geo import geo_cache_key
from src.utils.logging import get_logger

_ARTIST_EVENTS_SIZE = 200
_LOCATION_EVENTS_SIZE = 150
_EVENT_BY_ID_SIZE = 500
_ATTRACTION_IDS_SIZE = 500

_ARTIST_SEARCH_SIZE = 50
_GENERAL_SEARCH_SIZE = 50
_ATTRACTION_SEARCH_SIZE = 30
_KEYWORD_SEARCH_SIZE = 20
_MAX_ARTIST_LOCATION_RESULTS = 200


@dataclass(frozen=True)
class AttractionMatch:
    """Outcome of resolving an artist name to a Ticketmaster attraction.

    ``tm_id is None`` records that resolution was attempted and failed, so
    the failure is cached like a success.
    """

    tm_id: str | None = None
    tm_name: str | None = None

    @property
    def resolved(self) -> bool:
        return self.tm_id is not None


def _sort_by_date(events: list[Event]) -> list[Event]:
    return sorted(events, key=lambda event: event.date)


class EventFinder:
    """Finds concerts by artist, by location and by id.

    Parameters
    ----------
    provider:
        Event-listing provider (Ticketmaster).
    settings:
        Supplies cache TTLs and the geo-grid sizes.
    batch_size:
        Maximum number of concurrent provider calls during a multi-artist
        location search.
    timer:
        Clock for the domain caches.
    """

    def __init__(
        self,
        provider: IEventProvider,
        settings: Settings,
        *,
        batch_size: int = 3,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._batch_size = batch_size
        self._geo_decimals = settings.geo_coord_decimals
        self._geo_radius_step = settings.geo_radius_step_km
        self._logger: structlog.BoundLogger = get_logger(__name__)

        event_ttl = settings.event_cache_ttl
        location_ttl = min(event_ttl, settings.location_cache_max_ttl)
        cache_options = {
            "stats_interval": settings.cache_stats_interval,
            "sweep_interval": settings.cache_sweep_interval,
            "timer": timer,
        }
        self._artist_events: TTLCache[list[Event]] = TTLCache(
            "artist-events", event_ttl, _ARTIST_EVENTS_SIZE, **cache_options
        )
        self._location_events: TTLCache[list[Event]] = TTLCache(
            "location-events", location_ttl, _LOCATION_EVENTS_SIZE, **cache_options
        )
        self._event_by_id: TTLCache[Event] = TTLCache(
            "event-by-id", event_ttl, _EVENT_BY_ID_SIZE, **cache_options
        )
        self._attraction_ids: TTLCache[AttractionMatch] = TTLCache(
            "attraction-ids",
            settings.attraction_id_cache_ttl,
            _ATTRACTION_IDS_SIZE,
            **cache_options,
        )
        self._caches: list[TTLCache] = [
            self._artist_events,
            self._location_events,
            self._event_by_id,
            self._attraction_ids,
        ]

        self._logger.info(
            "event_finder_initialized",
            artist_cache_ttl=event_ttl,
            location_cache_ttl=location_ttl,
        )

    # ------------------------------------------------------------------
    # Lifecycle & observability
    # ------------------------------------------------------------------

    def start(self) -> None:
        for cache in self._caches:
            cache.start()

    async def close(self) -> None:
        for cache in self._caches:
            await cache.close()

    def cache_stats(self) -> dict[str, CacheStats]:
        return {cache.name: cache.stats() for cache in self._caches}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def location_key(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        artists: Sequence[Artist] | None = None,
    ) -> str:
        """Bucketed cache key for a location search, filtered by artist MBIDs."""
        return geo_cache_key(
            latitude,
            longitude,
            radius_km,
            [artist.mbid for artist in artists or ()],
            decimals=self._geo_decimals,
            radius_step=self._geo_radius_step,
        )

    async def find_by_artist(self, artist: Artist, upcoming: bool = True) -> list[Event]:
        """Return *artist*'s events with a known venue location, sorted by date."""
        cache_key = f"{artist.mbid}:{upcoming}"
        last_known, is_fresh = self._artist_events.lookup(cache_key)
        if is_fresh and last_known is not None:
            return last_known

        try:
            found = await self._provider.search_events_by_artist_name(
                artist.name, artist_id=artist.mbid, size=_ARTIST_SEARCH_SIZE
            )
        except BandPulseError as exc:
            self._logger.error(
                "artist_events_fetch_failed",
                artist_id=artist.mbid,
                artist_name=artist.name,
                error=str(exc),
            )
            return last_known or []

        now = datetime.now(tz=timezone.utc)
        events = [
            event
            for event in found
            if event.has_location and (not upcoming or event.date >= now)
        ]
        events = _sort_by_date(events)

        self._artist_events.set(cache_key, events)
        self._index(events)
        return events

    async def find_near_location(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        artists: Sequence[Artist] | None = None,
    ) -> list[Event]:
        """Return upcoming events near a point, optionally only for *artists*."""
        cache_key = self.location_key(latitude, longitude, radius_km, artists)
        last_known, is_fresh = self._location_events.lookup(cache_key)
        if is_fresh and last_known is not None:
            self._logger.debug("location_events_cache_hit", key=cache_key)
            return last_known

        try:
            if artists:
                events = await self._search_artists_near(latitude, longitude, radius_km, artists)
            else:
                found = await self._provider.search_events_by_location(
                    latitude,
                    longitude,
                    radius_km,
                    start_date_time=datetime.now(tz=timezone.utc),
                    size=_GENERAL_SEARCH_SIZE,
                )
                events = _sort_by_date([event for event in found if event.has_location])
        except BandPulseError as exc:
            self._logger.error(
                "location_events_fetch_failed",
                latitude=latitude,
                longitude=longitude,
                radius_km=radius_km,
                error=str(exc),
            )
            return last_known or []

        self._location_events.set(cache_key, events)
        self._index(events)
        return events

    def find_by_id(self, event_id: str) -> Event | None:
        """Return an event seen by any earlier search, fresh or stale."""
        event, _ = self._event_by_id.lookup(event_id)
        return event

    async def resolve_attraction_id(self, artist_name: str) -> AttractionMatch:
        """Resolve *artist_name* to a Ticketmaster attraction id.

        An exact case-insensitive name match wins; otherwise the provider's
        top result is used.  Unresolvable names are cached too.
        """
        normalized = artist_name.strip().lower()
        cached = self._attraction_ids.get(normalized)
        if cached is not None:
            return cached

        attractions = await self._provider.search_attractions(artist_name, size=5)
        if not attractions:
            self._logger.debug("attraction_not_found", artist_name=artist_name)
            match = AttractionMatch()
            self._attraction_ids.set(normalized, match)
            return match

        exact = next(
            (a for a in attractions if a.name.strip().lower() == normalized),
            None,
        )
        best = exact or attractions[0]
        match = AttractionMatch(tm_id=best.id, tm_name=best.name)
        self._attraction_ids.set(normalized, match)

        self._logger.info(
            "attraction_resolved",
            artist_name=artist_name,
            tm_id=best.id,
            tm_name=best.name,
            exact_match=exact is not None,
        )
        return match

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _index(self, events: Sequence[Event]) -> None:
        for event in events:
            self._event_by_id.set(event.external_id, event)

    async def _search_artists_near(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        artists: Sequence[Artist],
    ) -> list[Event]:
        now = datetime.now(tz=timezone.utc)

        matches = await throttled_gather(
            [self.resolve_attraction_id(artist.name) for artist in artists],
            asyncio.Semaphore(self._batch_size),
        )
        resolved = [
            (artist, match)
            for artist, match in zip(artists, matches)
            if isinstance(match, AttractionMatch) and match.resolved
        ]
        resolved_ids = {artist.mbid for artist, _ in resolved}
        unresolved = [artist for artist in artists if artist.mbid not in resolved_ids]

        self._logger.info(
            "attraction_resolution_summary",
            total=len(artists),
            resolved=len(resolved),
            unresolved=len(unresolved),
            unresolved_names=[artist.name for artist in unresolved],
        )

        # Attraction-id results first: they claim shared events before the
        # looser keyword matches do.
        searched: list[Artist] = []
        searches = []
        for artist, match in resolved:
            searched.append(artist)
            searches.append(
                self._provider.search_events_by_location(
                    latitude,
                    longitude,
                    radius_km,
                    attraction_ids=[match.tm_id],
                    start_date_time=now,
                    size=_ATTRACTION_SEARCH_SIZE,
                    artist_id=artist.mbid,
                    artist_name=match.tm_name or artist.name,
                )
            )
        for artist in unresolved:
            searched.append(artist)
            searches.append(
                self._provider.search_events_by_location(
                    latitude,
                    longitude,
                    radius_km,
                    keyword=artist.name,
                    start_date_time=now,
                    size=_KEYWORD_SEARCH_SIZE,
                    artist_id=artist.mbid,
                    artist_name=artist.name,
                )
            )

        results = await throttled_gather(searches, asyncio.Semaphore(self._batch_size))

        seen: set[str] = set()
        events: list[Event] = []
        for artist, result in zip(searched, results):
            if isinstance(result, BaseException):
                self._logger.warning(
                    "artist_location_search_failed",
                    artist_name=artist.name,
                    error=str(result),
                )
                continue
            for event in result:
                if event.external_id in seen:
                    continue
                seen.add(event.external_id)
                if event.has_location and event.date >= now:
                    events.append(event)

        events = _sort_by_date(events)[:_MAX_ARTIST_LOCATION_RESULTS]
        self._logger.info(
            "artist_location_search_complete",
            total_events=len(events),
            from_attraction_ids=len(resolved),
            from_keyword_fallback=len(unresolved),
        )
        return events
