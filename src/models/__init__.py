"""BandPulse domain models - re-exports all public model classes.

Organised by concern:
    - artist.py   - artist identity (MusicBrainz-sourced)
    - event.py    - concerts, venues, Ticketmaster attractions
    - refresh.py  - stale-while-revalidate keys and results
"""

from __future__ import annotations

from src.models.artist import Artist, ArtistAlias, ArtistArea
from src.models.event import (
    Attraction,
    Event,
    EventStatus,
    EventVenue,
    GeoPoint,
    InventoryStatus,
)
from src.models.refresh import RefreshKey, Resolution

__all__ = [
    "Artist",
    "ArtistAlias",
    "ArtistArea",
    "Attraction",
    "Event",
    "EventStatus",
    "EventVenue",
    "GeoPoint",
    "InventoryStatus",
    "RefreshKey",
    "Resolution",
]
