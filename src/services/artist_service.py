"""Artist identity lookups with stale-while-revalidate semantics.

Reads are answered from an in-memory store immediately; MusicBrainz is only
ever called from a background refresh.  A cold key therefore answers
``Resolution(None, refresh_pending=True)`` on the first request and the
real result on a re-poll.

Store layout (one TTLCache, ``artist_cache_ttl`` seconds)::

    artist-search:<normalised query>:<limit>   → list[Artist]
    artist-mbid:<mbid>                          → Artist
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from src.config.settings import Settings
from src.interfaces.music_db_provider import IMusicDatabaseProvider
from src.models.artist import Artist
from src.models.refresh import RefreshKey, Resolution
from src.providers.cache.ttl_cache import CacheStats, TTLCache
from src.services.refresh_coordinator import RefreshCoordinator
from src.utils.logging import get_logger

SEARCH_KIND = "artist-search"
MBID_KIND = "artist-mbid"

_STORE_SIZE = 2000


def normalize_query(query: str) -> str:
    """Lower-case and collapse whitespace so trivially different queries share a key."""
    return " ".join(query.lower().split())


class ArtistService:
    """Search artists and look them up by MBID, never blocking on MusicBrainz."""

    def __init__(
        self,
        provider: IMusicDatabaseProvider,
        settings: Settings,
        *,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._store: TTLCache[Any] = TTLCache(
            "swr-artists",
            settings.artist_cache_ttl,
            _STORE_SIZE,
            stats_interval=settings.cache_stats_interval,
            sweep_interval=settings.cache_sweep_interval,
            timer=timer,
        )
        self._coordinator: RefreshCoordinator[Any] = RefreshCoordinator("artists", self._store)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def coordinator(self) -> RefreshCoordinator[Any]:
        return self._coordinator

    def search_artists(self, query: str, limit: int = 10) -> Resolution[list[Artist]]:
        """Return cached search results for *query*, refreshing in the background."""
        key = RefreshKey(SEARCH_KIND, f"{normalize_query(query)}:{limit}")

        async def fetch() -> list[Artist] | None:
            artists = await self._provider.search_artists(query, limit)
            if not artists:
                return None
            for artist in artists:
                mbid_key = RefreshKey(MBID_KIND, artist.mbid).cache_key()
                if not self._store.has(mbid_key):
                    self._store.set(mbid_key, artist)
            return artists

        return self._coordinator.resolve(key, fetch)

    def get_artist_by_mbid(self, mbid: str) -> Resolution[Artist]:
        """Return the cached artist for *mbid*, refreshing in the background."""
        key = RefreshKey(MBID_KIND, mbid)

        async def fetch() -> Artist | None:
            return await self._provider.get_artist_by_mbid(mbid)

        return self._coordinator.resolve(key, fetch)

    def get_artists(self, mbids: Sequence[str]) -> Resolution[list[Artist]]:
        """Resolve several MBIDs at once.

        Unknown MBIDs are left out of ``value`` and make ``refresh_pending``
        true while they are fetched.
        """
        artists: list[Artist] = []
        pending = False
        for mbid in dict.fromkeys(mbids):
            resolution = self.get_artist_by_mbid(mbid)
            pending = pending or resolution.refresh_pending
            if resolution.value is not None:
                artists.append(resolution.value)
        return Resolution(value=artists, refresh_pending=pending)

    def cache_stats(self) -> CacheStats:
        return self._store.stats()

    async def drain(self) -> None:
        await self._coordinator.drain()

    async def close(self) -> None:
        await self._store.close()
