"""Abstract base class for concert-listing providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from src.models.event import Attraction, Event, InventoryStatus

if TYPE_CHECKING:
    from src.providers.cache.ttl_cache import CacheStats


class IEventProvider(ABC):
    """Contract for event-listing services (Ticketmaster Discovery).

    Search methods map provider payloads into :class:`Event` records.  The
    ``artist_id`` / ``artist_name`` arguments supply the mapping context:
    which followed artist the results belong to.
    """

    @abstractmethod
    async def search_events_by_location(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        *,
        attraction_ids: Sequence[str] | None = None,
        keyword: str | None = None,
        classification_name: str = "music",
        start_date_time: datetime | None = None,
        end_date_time: datetime | None = None,
        size: int = 50,
        page: int = 0,
        sort: str = "date,asc",
        artist_id: str = "",
        artist_name: str | None = None,
    ) -> list[Event]:
        """Search events within *radius_km* of a point.

        Raises
        ------
        src.utils.errors.ProviderUnavailableError
            If the upstream call fails and nothing is cached for the query.
        """

    @abstractmethod
    async def search_events_by_artist_name(
        self,
        artist_name: str,
        *,
        artist_id: str = "",
        start_date_time: datetime | None = None,
        size: int = 50,
        page: int = 0,
        sort: str = "date,asc",
    ) -> list[Event]:
        """Keyword search for an artist's events, anywhere."""

    @abstractmethod
    async def search_attractions(self, keyword: str, size: int = 5) -> list[Attraction]:
        """Search provider attractions by name.  Never raises; ``[]`` on failure."""

    @abstractmethod
    async def get_inventory_status(self, event_ids: Sequence[str]) -> dict[str, InventoryStatus]:
        """Return ticket availability per event id.  Never raises; ``{}`` on failure."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier for this provider, e.g. ``"ticketmaster"``."""

    @abstractmethod
    def cache_stats(self) -> dict[str, CacheStats]:
        """Return a statistics snapshot for each response cache."""
