"""Map Ticketmaster Discovery API payloads to domain models.

Pure functions: no I/O, no logging.  Every field Ticketmaster may omit has a
default, so a sparse payload still yields a valid :class:`Event`.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from src.models.event import (
    Attraction,
    Event,
    EventStatus,
    EventVenue,
    GeoPoint,
    InventoryStatus,
)

_STATUS_MAP: dict[str, EventStatus] = {
    "cancelled": EventStatus.CANCELLED,
    "postponed": EventStatus.POSTPONED,
    "rescheduled": EventStatus.POSTPONED,
}

_INVENTORY_MAP: dict[str, InventoryStatus] = {
    "TICKETS_AVAILABLE": InventoryStatus.AVAILABLE,
    "FEW_TICKETS_LEFT": InventoryStatus.FEW,
    "TICKETS_NOT_AVAILABLE": InventoryStatus.SOLD_OUT,
}


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_event_date(start: dict[str, Any] | None, default: datetime) -> datetime:
    """Return the event start as an aware UTC datetime.

    Prefers ``dateTime`` (UTC instant); falls back to ``localDate`` at
    midnight UTC, then to *default*.
    """
    start = start or {}
    raw = start.get("dateTime")
    if raw:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)

    raw = start.get("localDate")
    if raw:
        try:
            day = date.fromisoformat(raw)
        except ValueError:
            return default
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)

    return default


def map_venue(venue: dict[str, Any] | None) -> EventVenue:
    """Map a Ticketmaster venue; a missing venue becomes ``"TBA"`` at (0, 0)."""
    if not venue:
        return EventVenue()

    location = venue.get("location") or {}
    country = venue.get("country") or {}
    return EventVenue(
        name=venue.get("name") or "TBA",
        address=(venue.get("address") or {}).get("line1") or "",
        city=(venue.get("city") or {}).get("name") or "",
        country=country.get("name") or country.get("countryCode") or "",
        location=GeoPoint(
            coordinates=(
                _to_float(location.get("longitude")),
                _to_float(location.get("latitude")),
            )
        ),
    )


def map_attraction(raw: dict[str, Any]) -> Attraction:
    return Attraction(
        id=raw["id"],
        name=raw.get("name", ""),
        type=raw.get("type"),
        url=raw.get("url"),
    )


def map_inventory_status(code: str | None) -> InventoryStatus:
    """Map an Inventory Status API code; anything unrecognised is ``UNKNOWN``."""
    return _INVENTORY_MAP.get(code or "", InventoryStatus.UNKNOWN)


def map_event(
    tm_event: dict[str, Any],
    artist_id: str,
    artist_name: str,
    now: datetime | None = None,
) -> Event:
    """Map one Ticketmaster event to an :class:`Event`.

    Parameters
    ----------
    tm_event:
        A single entry from ``_embedded.events``.
    artist_id:
        MBID of the artist the event is attributed to ("" for general
        area searches).
    artist_name:
        Display name used for ``artist_name`` and the fallback title.
    now:
        Reference time for the sold-out rule and missing dates.
    """
    now = now or datetime.now(tz=timezone.utc)
    dates = tm_event.get("dates") or {}
    event_date = parse_event_date(dates.get("start"), default=now)

    status_code = (dates.get("status") or {}).get("code")
    status = _STATUS_MAP.get(status_code or "", EventStatus.CONFIRMED)

    # An event taken off sale before it happens has sold out.
    sold_out = False
    inventory = InventoryStatus.UNKNOWN
    if status_code == "offsale" and event_date > now:
        sold_out = True
        inventory = InventoryStatus.SOLD_OUT
    elif status_code == "onsale":
        inventory = InventoryStatus.AVAILABLE

    event_type = "concert"
    for classification in tm_event.get("classifications") or []:
        if classification.get("primary"):
            genre = (classification.get("genre") or {}).get("name")
            if genre:
                event_type = genre.lower()
            break

    venues = (tm_event.get("_embedded") or {}).get("venues") or []
    return Event(
        external_id=tm_event["id"],
        artist_id=artist_id,
        artist_name=artist_name,
        title=tm_event.get("name") or f"{artist_name} Concert",
        date=event_date,
        venue=map_venue(venues[0] if venues else None),
        event_type=event_type,
        status=status,
        ticket_url=tm_event.get("url"),
        sold_out=sold_out,
        inventory_status=inventory,
        last_checked=now,
    )


def primary_attraction_name(tm_event: dict[str, Any]) -> str | None:
    """Name of the first attraction on the event, if any."""
    attractions = (tm_event.get("_embedded") or {}).get("attractions") or []
    if attractions and attractions[0].get("name"):
        return attractions[0]["name"]
    return None
