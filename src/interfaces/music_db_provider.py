"""Abstract base class for artist-identity providers.

Defines the contract for resolving artist names and MBIDs against an external
music database (MusicBrainz).  The adapter pattern keeps the services layer
independent of the concrete HTTP client, and lets tests inject fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from src.models.artist import Artist

if TYPE_CHECKING:
    from src.providers.cache.ttl_cache import CacheStats


class IMusicDatabaseProvider(ABC):
    """Contract for artist identity lookups.

    Implementations are expected to cache raw responses, respect the
    provider's rate limit, and serve the last known response when the
    upstream call fails.
    """

    @abstractmethod
    async def search_artists(self, query: str, limit: int = 10) -> list[Artist]:
        """Search the database for artists matching *query*.

        Parameters
        ----------
        query:
            Free-text artist name.
        limit:
            Maximum number of results.

        Returns
        -------
        list[Artist]
            Zero or more artists ranked by relevance (``score``).

        Raises
        ------
        src.utils.errors.ProviderUnavailableError
            If the upstream call fails and nothing is cached for the query.
        """

    @abstractmethod
    async def get_artist_by_mbid(self, mbid: str) -> Artist | None:
        """Fetch one artist by MusicBrainz ID.

        Returns
        -------
        Artist or None
            The artist, or ``None`` if the MBID does not exist upstream.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier for this provider, e.g. ``"musicbrainz"``."""

    @abstractmethod
    def cache_stats(self) -> dict[str, CacheStats]:
        """Return a statistics snapshot for each response cache."""
