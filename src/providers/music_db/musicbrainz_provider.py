"""MusicBrainz provider implementing IMusicDatabaseProvider.

Queries the MusicBrainz web service (API v2, JSON) for artist identity data:
name search and lookup by MBID.  MusicBrainz blocks clients that exceed
1 request/second or omit a descriptive User-Agent, so every call goes through
the provider's own :class:`RateLimitedQueue` (1.1 s spacing by default) and
carries ``settings.musicbrainz_user_agent``.

Raw responses are cached for ``settings.mb_http_cache_ttl`` seconds.  A cache
hit does not consume a rate-limit slot.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import httpx

from src.config.settings import Settings
from src.interfaces.music_db_provider import IMusicDatabaseProvider
from src.models.artist import Artist, ArtistAlias, ArtistArea
from src.providers.cache.ttl_cache import TTLCache
from src.providers.http_provider import RateLimitedHTTPProvider
from src.utils.concurrency import RateLimitedQueue

_MAX_SEARCH_LIMIT = 100
_SEARCH_CACHE_SIZE = 200
_LOOKUP_CACHE_SIZE = 500


def normalize_artist(raw: dict[str, Any]) -> Artist:
    """Map a raw MusicBrainz artist object to an :class:`Artist`.

    Only identity data is kept: no relations, releases or life-span.
    """
    raw_area = raw.get("area")
    area = None
    if raw_area and raw_area.get("name"):
        codes = raw_area.get("iso-3166-1-codes") or []
        area = ArtistArea(name=raw_area["name"], iso_3166_1=codes[0] if codes else None)

    aliases = [
        ArtistAlias(
            name=alias["name"],
            sort_name=alias.get("sort-name"),
            locale=alias.get("locale"),
            primary=alias.get("primary"),
            type=alias.get("type"),
        )
        for alias in raw.get("aliases") or []
        if alias.get("name")
    ]

    score = raw.get("score")
    return Artist(
        mbid=raw["id"],
        name=raw.get("name", ""),
        sort_name=raw.get("sort-name"),
        disambiguation=raw.get("disambiguation") or None,
        type=raw.get("type"),
        country=raw.get("country"),
        area=area,
        aliases=aliases,
        score=int(score) if score is not None else None,
    )


class MusicBrainzProvider(RateLimitedHTTPProvider, IMusicDatabaseProvider):
    """MusicBrainz artist-identity provider with rate limiting and caching.

    Parameters
    ----------
    settings:
        Supplies base URL, User-Agent, rate limit, timeout and cache TTL.
    http_client:
        Shared ``httpx.AsyncClient``.
    rate_limiter:
        Override the queue built from ``settings.musicbrainz_rate_limit``.
    timer:
        Clock for the response caches; tests inject a fake.
    """

    provider_name = "musicbrainz"

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
            settings.musicbrainz_base_url,
            rate_limiter or RateLimitedQueue(self.provider_name, settings.musicbrainz_rate_limit),
            timeout=settings.musicbrainz_timeout,
            headers={
                "User-Agent": settings.musicbrainz_user_agent,
                "Accept": "application/json",
            },
        )
        cache_options = {
            "stats_interval": settings.cache_stats_interval,
            "sweep_interval": settings.cache_sweep_interval,
            "timer": timer,
        }
        self._search_cache: TTLCache[Any] = self._register_cache(
            TTLCache(
                "mb-http-search", settings.mb_http_cache_ttl, _SEARCH_CACHE_SIZE, **cache_options
            )
        )
        self._lookup_cache: TTLCache[Any] = self._register_cache(
            TTLCache(
                "mb-http-artists", settings.mb_http_cache_ttl, _LOOKUP_CACHE_SIZE, **cache_options
            )
        )
        self._logger.info(
            "musicbrainz_provider_initialized",
            user_agent=settings.musicbrainz_user_agent,
            min_interval=self._rate_limiter.min_interval,
        )

    # ------------------------------------------------------------------
    # IMusicDatabaseProvider implementation
    # ------------------------------------------------------------------

    async def search_artists(self, query: str, limit: int = 10) -> list[Artist]:
        """Search MusicBrainz for artists matching *query*."""
        limit = max(1, min(limit, _MAX_SEARCH_LIMIT))
        cache_key = f"search:{query.strip().lower()}:{limit}"

        payload = await self._fetch(
            self._search_cache,
            cache_key,
            self._url("/artist"),
            {"query": query, "limit": limit, "fmt": "json"},
        )
        artists = [normalize_artist(raw) for raw in (payload or {}).get("artists", [])]

        self._logger.debug("musicbrainz_artist_search", query=query, result_count=len(artists))
        return artists

    async def get_artist_by_mbid(self, mbid: str) -> Artist | None:
        """Fetch one artist (with aliases).  ``None`` when MusicBrainz answers 404."""
        payload = await self._fetch(
            self._lookup_cache,
            f"mbid:{mbid}",
            self._url(f"/artist/{mbid}"),
            {"inc": "aliases", "fmt": "json"},
            allow_not_found=True,
        )
        if payload is None:
            return None

        artist = normalize_artist(payload)
        self._logger.debug("musicbrainz_artist_lookup", mbid=mbid, name=artist.name)
        return artist
