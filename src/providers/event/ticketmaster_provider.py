"""Ticketmaster Discovery API v2 provider implementing IEventProvider.

Fetches concert listings, attractions (Ticketmaster's notion of an artist)
and ticket inventory.  The free tier allows 5 requests/second, so calls are
spaced 0.22 s apart by the provider's own :class:`RateLimitedQueue`.

Two response caches sit in front of the API:

    tm-http-events        raw /events.json responses   (200 entries)
    tm-http-attractions   raw /attractions.json results (100 entries)

Location-search cache keys are bucketed with :func:`geo_cache_key` so that
nearby map positions share an entry; the outbound request always carries the
caller's full-precision coordinates.  Inventory lookups are never cached.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import httpx

from src.config.settings import Settings
from src.interfaces.event_provider import IEventProvider
from src.models.event import Attraction, Event, InventoryStatus
from src.providers.cache.ttl_cache import TTLCache
from src.providers.event.ticketmaster_mapper import (
    map_attraction,
    map_event,
    map_inventory_status,
    primary_attraction_name,
)
from src.providers.http_provider import RateLimitedHTTPProvider
from src.utils.concurrency import RateLimitedQueue
from src.utils.errors import ProviderError, ProviderUnavailableError
from src.utils.geo import geo_cache_key

# Ticketmaster rejects radii above 500 miles.
MAX_RADIUS_KM = 804.0

_EVENT_CACHE_SIZE = 200
_ATTRACTION_CACHE_SIZE = 100
_DEFAULT_CLASSIFICATION = "music"
_DEFAULT_SORT = "date,asc"
_UNKNOWN_ARTIST = "Unknown Artist"


def format_tm_datetime(value: datetime) -> str:
    """Format *value* the way the Discovery API expects: ``YYYY-MM-DDTHH:MM:SSZ``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class TicketmasterProvider(RateLimitedHTTPProvider, IEventProvider):
    """Ticketmaster event provider with rate limiting and response caching.

    Parameters
    ----------
    settings:
        Supplies API key, URLs, rate limit, timeout, cache TTL and the
        geo-grid sizes used for location cache keys.
    http_client:
        Shared ``httpx.AsyncClient``.
    rate_limiter:
        Override the queue built from ``settings.ticketmaster_rate_limit``.
    timer:
        Clock for the response caches.
    """

    provider_name = "ticketmaster"

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        rate_limiter: RateLimitedQueue | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(
            http_client,
            settings.ticketmaster_base_url,
            rate_limiter or RateLimitedQueue(self.provider_name, settings.ticketmaster_rate_limit),
            timeout=settings.ticketmaster_timeout,
            headers={"Accept": "application/json"},
        )
        self._api_key = settings.ticketmaster_api_key
        self._inventory_url = settings.ticketmaster_inventory_url
        self._geo_decimals = settings.geo_coord_decimals
        self._geo_radius_step = settings.geo_radius_step_km

        cache_options = {
            "stats_interval": settings.cache_stats_interval,
            "sweep_interval": settings.cache_sweep_interval,
            "timer": timer,
        }
        self._event_cache: TTLCache[Any] = self._register_cache(
            TTLCache(
                "tm-http-events", settings.tm_http_cache_ttl, _EVENT_CACHE_SIZE, **cache_options
            )
        )
        self._attraction_cache: TTLCache[Any] = self._register_cache(
            TTLCache(
                "tm-http-attractions",
                settings.tm_http_cache_ttl,
                _ATTRACTION_CACHE_SIZE,
                **cache_options,
            )
        )

        if not self._api_key:
            self._logger.warning("ticketmaster_api_key_missing")
        self._logger.info(
            "ticketmaster_provider_initialized",
            http_cache_ttl=settings.tm_http_cache_ttl,
            min_interval=self._rate_limiter.min_interval,
        )

    # ------------------------------------------------------------------
    # IEventProvider implementation
    # ------------------------------------------------------------------

    async def search_events_by_location(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        *,
        attraction_ids: Sequence[str] | None = None,
        keyword: str | None = None,
        classification_name: str = _DEFAULT_CLASSIFICATION,
        start_date_time: datetime | None = None,
        end_date_time: datetime | None = None,
        size: int = 50,
        page: int = 0,
        sort: str = _DEFAULT_SORT,
        artist_id: str = "",
        artist_name: str | None = None,
    ) -> list[Event]:
        """Search events within *radius_km* of ``(latitude, longitude)``.

        When *artist_name* is ``None`` (general area search) each event is
        attributed to its first attraction, or to the event name.
        """
        radius = min(radius_km, MAX_RADIUS_KM)

        # start_date_time is a rolling "now" and stays out of the key.
        cache_key = ":".join(
            (
                "loc",
                geo_cache_key(
                    latitude,
                    longitude,
                    radius,
                    attraction_ids,
                    decimals=self._geo_decimals,
                    radius_step=self._geo_radius_step,
                ),
                (keyword or "").strip().lower(),
                classification_name,
                format_tm_datetime(end_date_time) if end_date_time else "",
                str(size),
                str(page),
                sort,
            )
        )

        params: dict[str, Any] = {
            "apikey": self._api_key,
            "latlong": f"{latitude},{longitude}",
            "radius": math.ceil(radius),
            "unit": "km",
            "classificationName": classification_name,
            "size": size,
            "page": page,
            "sort": sort,
        }
        if keyword:
            params["keyword"] = keyword
        if attraction_ids:
            params["attractionId"] = ",".join(attraction_ids)
        if start_date_time:
            params["startDateTime"] = format_tm_datetime(start_date_time)
        if end_date_time:
            params["endDateTime"] = format_tm_datetime(end_date_time)

        payload = await self._fetch(
            self._event_cache, cache_key, self._url("/events.json"), params
        )
        events = self._map_events(payload, artist_id, artist_name)
        self._logger.debug(
            "ticketmaster_location_search",
            radius_km=radius,
            keyword=keyword,
            result_count=len(events),
        )
        return events

    async def search_events_by_artist_name(
        self,
        artist_name: str,
        *,
        artist_id: str = "",
        start_date_time: datetime | None = None,
        size: int = 50,
        page: int = 0,
        sort: str = _DEFAULT_SORT,
    ) -> list[Event]:
        """Keyword search for *artist_name*'s events, worldwide."""
        cache_key = f"artist:{artist_name.strip().lower()}:{size}:{page}:{sort}"

        params: dict[str, Any] = {
            "apikey": self._api_key,
            "keyword": artist_name,
            "classificationName": _DEFAULT_CLASSIFICATION,
            "size": size,
            "page": page,
            "sort": sort,
        }
        if start_date_time:
            params["startDateTime"] = format_tm_datetime(start_date_time)

        payload = await self._fetch(
            self._event_cache, cache_key, self._url("/events.json"), params
        )
        events = self._map_events(payload, artist_id, artist_name)
        self._logger.debug(
            "ticketmaster_artist_search", artist_name=artist_name, result_count=len(events)
        )
        return events

    async def search_attractions(self, keyword: str, size: int = 5) -> list[Attraction]:
        """Search attractions by name.  Returns ``[]`` when nothing can be served."""
        cache_key = f"attr:{keyword.strip().lower()}:{size}"
        params = {
            "apikey": self._api_key,
            "keyword": keyword,
            "classificationName": _DEFAULT_CLASSIFICATION,
            "size": size,
        }
        try:
            payload = await self._fetch(
                self._attraction_cache, cache_key, self._url("/attractions.json"), params
            )
        except ProviderUnavailableError:
            return []

        raw = ((payload or {}).get("_embedded") or {}).get("attractions") or []
        return [map_attraction(item) for item in raw if item.get("id")]

    async def get_inventory_status(self, event_ids: Sequence[str]) -> dict[str, InventoryStatus]:
        """Look up ticket availability for up to ~50 events in one call.

        Non-critical: any failure is logged and yields ``{}``.
        """
        if not event_ids:
            return {}

        try:
            payload = await self._request(
                self._inventory_url,
                {"apikey": self._api_key, "events": ",".join(event_ids)},
            )
        except ProviderError as exc:
            self._logger.warning(
                "ticketmaster_inventory_failed", error=str(exc), event_count=len(event_ids)
            )
            return {}

        result: dict[str, InventoryStatus] = {}
        for item in payload if isinstance(payload, list) else []:
            event_id = item.get("eventId") or item.get("event_id")
            if event_id:
                result[event_id] = map_inventory_status(item.get("status"))

        self._logger.debug(
            "ticketmaster_inventory_checked",
            requested=len(event_ids),
            returned=len(result),
            sold_out=sum(1 for s in result.values() if s is InventoryStatus.SOLD_OUT),
        )
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _map_events(
        payload: dict[str, Any] | None,
        artist_id: str,
        artist_name: str | None,
    ) -> list[Event]:
        raw_events = ((payload or {}).get("_embedded") or {}).get("events") or []
        now = datetime.now(tz=timezone.utc)
        events: list[Event] = []
        for tm_event in raw_events:
            if not tm_event.get("id"):
                continue
            name = (
                artist_name
                or primary_attraction_name(tm_event)
                or tm_event.get("name")
                or _UNKNOWN_ARTIST
            )
            events.append(map_event(tm_event, artist_id, name, now=now))
        return events
