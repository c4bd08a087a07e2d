"""Shared pytest fixtures for the BandPulse test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from src.config.settings import Settings
from src.models.artist import Artist
from src.models.event import Event, EventVenue, GeoPoint

# ---------------------------------------------------------------------------
# Deterministic time
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock usable as a cache ``timer`` or queue ``clock``.

    :meth:`sleep` yields to the event loop once and then jumps the clock
    forward, so rate-limit tests run instantly and deterministically.
    """

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await asyncio.sleep(0)
        self.now += max(seconds, 0.0)


class TickingClock(FakeClock):
    """FakeClock that moves forward by *step* on every reading."""

    def __init__(self, start: float = 1_000.0, step: float = 0.001) -> None:
        super().__init__(start)
        self.step = step

    def __call__(self) -> float:
        now = self.now
        self.now += self.step
        return now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> Settings:
    """Settings with zero rate-limit spacing and no stats logging."""
    values: dict[str, Any] = {
        "musicbrainz_rate_limit": 0.0,
        "ticketmaster_rate_limit": 0.0,
        "ticketmaster_api_key": "test-key",
        "cache_stats_interval": 0,
        "artist_cache_ttl": 600.0,
        "event_cache_ttl": 600.0,
        "location_cache_max_ttl": 300.0,
        "tm_http_cache_ttl": 60.0,
        "mb_http_cache_ttl": 60.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


# ---------------------------------------------------------------------------
# Domain objects
# ---------------------------------------------------------------------------


def make_artist(mbid: str = "mbid-radiohead", name: str = "Radiohead", **kwargs: Any) -> Artist:
    return Artist(mbid=mbid, name=name, **kwargs)


def make_event(
    external_id: str,
    *,
    artist_id: str = "mbid-radiohead",
    artist_name: str = "Radiohead",
    days_ahead: float = 10,
    location: tuple[float, float] = (-3.7038, 40.4168),
    **kwargs: Any,
) -> Event:
    return Event(
        external_id=external_id,
        artist_id=artist_id,
        artist_name=artist_name,
        title=f"{artist_name} live",
        date=datetime.now(tz=timezone.utc) + timedelta(days=days_ahead),
        venue=EventVenue(name="WiZink Center", location=GeoPoint(coordinates=location)),
        **kwargs,
    )


@pytest.fixture()
def artist_factory() -> Callable[..., Artist]:
    return make_artist


@pytest.fixture()
def event_factory() -> Callable[..., Event]:
    return make_event


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------


def tm_event_payload(
    event_id: str,
    *,
    name: str = "Radiohead",
    date_time: str = "2099-06-01T19:00:00Z",
    status: str = "onsale",
    latitude: str = "40.4168",
    longitude: str = "-3.7038",
    attraction: str | None = "Radiohead",
) -> dict[str, Any]:
    """A trimmed Discovery API event object."""
    embedded: dict[str, Any] = {
        "venues": [
            {
                "id": "KovZpZAEdFtJ",
                "name": "WiZink Center",
                "city": {"name": "Madrid"},
                "country": {"name": "Spain", "countryCode": "ES"},
                "address": {"line1": "Av. Felipe II"},
                "location": {"latitude": latitude, "longitude": longitude},
            }
        ]
    }
    if attraction:
        embedded["attractions"] = [{"id": "K8vZ9171ob7", "name": attraction}]
    return {
        "id": event_id,
        "name": name,
        "url": f"https://www.ticketmaster.com/event/{event_id}",
        "dates": {"start": {"dateTime": date_time}, "status": {"code": status}},
        "classifications": [{"primary": True, "genre": {"name": "Rock"}}],
        "_embedded": embedded,
    }


def tm_search_payload(*events: dict[str, Any]) -> dict[str, Any]:
    return {
        "_embedded": {"events": list(events)},
        "page": {"size": 50, "totalElements": len(events), "totalPages": 1, "number": 0},
    }


@pytest.fixture()
def mb_artist_payload() -> dict[str, Any]:
    return {
        "id": "a74b1b7f-71a5-4011-9441-d0b5e4122711",
        "name": "Radiohead",
        "sort-name": "Radiohead",
        "type": "Group",
        "country": "GB",
        "disambiguation": "",
        "area": {"id": "8a754a16", "name": "United Kingdom", "iso-3166-1-codes": ["GB"]},
        "aliases": [
            {"name": "On A Friday", "sort-name": "On A Friday", "primary": None, "type": None}
        ],
        "score": 100,
    }
