"""Concert event models.

An :class:`Event` is one concert associated with one artist.  Venue
coordinates follow GeoJSON order (longitude, latitude); ``(0, 0)`` means the
provider did not supply a location and such events are filtered out of
location searches.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class EventStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Lifecycle status of an event."""

    ANNOUNCED = "announced"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


class InventoryStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Ticket availability, as far as the provider tells us."""

    AVAILABLE = "available"
    FEW = "few"
    SOLD_OUT = "soldout"
    UNKNOWN = "unknown"


class GeoPoint(BaseModel):
    """GeoJSON point: ``coordinates`` is ``(longitude, latitude)``."""

    model_config = ConfigDict(frozen=True)

    type: str = "Point"
    coordinates: tuple[float, float] = (0.0, 0.0)

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    @property
    def is_unknown(self) -> bool:
        return self.coordinates == (0.0, 0.0)


class EventVenue(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "TBA"
    address: str = ""
    city: str = ""
    country: str = ""
    location: GeoPoint = Field(default_factory=GeoPoint)


class Attraction(BaseModel):
    """A Ticketmaster attraction (the provider's notion of an artist)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str | None = None
    url: str | None = None


class Event(BaseModel):
    """A concert listing mapped from a provider payload."""

    model_config = ConfigDict(frozen=True)

    external_id: str
    artist_id: str  # MBID of the artist; "" for general-area search results
    artist_name: str
    title: str
    date: datetime
    venue: EventVenue = Field(default_factory=EventVenue)
    event_type: str = "concert"
    status: EventStatus = EventStatus.CONFIRMED
    ticket_url: str | None = None
    data_source: str = "ticketmaster"
    sold_out: bool = False
    inventory_status: InventoryStatus = InventoryStatus.UNKNOWN
    last_checked: datetime = Field(default_factory=_utcnow)

    @property
    def has_location(self) -> bool:
        return not self.venue.location.is_unknown
