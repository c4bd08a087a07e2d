"""FastAPI API routes for BandPulse.

Provides read endpoints for artists and concerts plus a health check.
Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/artists/search?q=&limit=      GET     Search artists (SWR)
# /api/v1/artists/mbid/{mbid}           GET     Artist by MBID (SWR)
# /api/v1/artists/{mbid}/events         GET     Upcoming events for artist (SWR)
# /api/v1/events/near                   GET     Events near a point, optionally
#                                               for given artist MBIDs (SWR)
# /api/v1/events/explore                GET     All music events near a point
# /api/v1/events/{event_id}             GET     Single event seen by a search
# /api/v1/health                        GET     Cache stats + in-flight refreshes
#
# SWR endpoints never wait for upstream.  ``refresh_pending=true`` in the
# response means "stale or missing, re-poll shortly".
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.api.schemas import (
    ArtistListResponse,
    ArtistResponse,
    ErrorResponse,
    EventListResponse,
    EventResponse,
    HealthResponse,
)
from src.services.artist_service import ArtistService
from src.services.event_service import EventService
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "1.0.0"
_DEFAULT_RADIUS_KM = 50.0
_MAX_RADIUS_KM = 804.0

# ---------------------------------------------------------------------------
# Dependency injection helpers - resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_artist_service(request: Request) -> ArtistService:
    """Return the artist service from application state."""
    return request.app.state.artist_service


def _get_event_service(request: Request) -> EventService:
    """Return the event service from application state."""
    return request.app.state.event_service


ArtistServiceDep = Annotated[ArtistService, Depends(_get_artist_service)]
EventServiceDep = Annotated[EventService, Depends(_get_event_service)]

Latitude = Annotated[float, Query(ge=-90.0, le=90.0)]
Longitude = Annotated[float, Query(ge=-180.0, le=180.0)]
RadiusKm = Annotated[float, Query(gt=0.0, le=_MAX_RADIUS_KM)]


# ---------------------------------------------------------------------------
# Artists
# ---------------------------------------------------------------------------


@router.get(
    "/artists/search",
    response_model=ArtistListResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Search artists by name",
)
async def search_artists(
    artist_service: ArtistServiceDep,
    q: Annotated[str, Query(min_length=1, max_length=200)],
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> ArtistListResponse:
    resolution = artist_service.search_artists(q, limit)
    return ArtistListResponse(
        data=resolution.value or [],
        refresh_pending=resolution.refresh_pending,
    )


@router.get(
    "/artists/mbid/{mbid}",
    response_model=ArtistResponse,
    summary="Get an artist by MusicBrainz ID",
)
async def get_artist(mbid: str, artist_service: ArtistServiceDep) -> ArtistResponse:
    """Return the artist, or ``data=null`` with ``refresh_pending`` while it is fetched."""
    resolution = artist_service.get_artist_by_mbid(mbid)
    return ArtistResponse(data=resolution.value, refresh_pending=resolution.refresh_pending)


@router.get(
    "/artists/{mbid}/events",
    response_model=EventListResponse,
    summary="Upcoming events for an artist",
)
async def get_artist_events(
    mbid: str,
    artist_service: ArtistServiceDep,
    event_service: EventServiceDep,
) -> EventListResponse:
    artist = artist_service.get_artist_by_mbid(mbid)
    if artist.value is None:
        # Events are searched by artist name; wait for the identity first.
        return EventListResponse(data=[], refresh_pending=artist.refresh_pending)

    events = event_service.get_artist_events(artist.value)
    return EventListResponse(
        data=events.value or [],
        refresh_pending=events.refresh_pending or artist.refresh_pending,
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@router.get(
    "/events/near",
    response_model=EventListResponse,
    summary="Events near a point",
)
async def search_events_near(
    event_service: EventServiceDep,
    artist_service: ArtistServiceDep,
    lat: Latitude,
    lng: Longitude,
    radius_km: RadiusKm = _DEFAULT_RADIUS_KM,
    artist_ids: Annotated[
        str | None, Query(description="Comma-separated artist MBIDs")
    ] = None,
) -> EventListResponse:
    """Events near ``(lat, lng)``, restricted to *artist_ids* when given."""
    mbids = [mbid.strip() for mbid in (artist_ids or "").split(",") if mbid.strip()]
    artists_pending = False
    artists = None
    if mbids:
        resolved = artist_service.get_artists(mbids)
        artists_pending = resolved.refresh_pending
        artists = resolved.value or []
        if not artists:
            return EventListResponse(data=[], refresh_pending=artists_pending)

    events = event_service.search_events_near(lat, lng, radius_km, artists)
    return EventListResponse(
        data=events.value or [],
        refresh_pending=events.refresh_pending or artists_pending,
    )


@router.get(
    "/events/explore",
    response_model=EventListResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Explore all music events near a point",
)
async def explore_events(
    event_service: EventServiceDep,
    lat: Latitude,
    lng: Longitude,
    radius_km: RadiusKm = _DEFAULT_RADIUS_KM,
) -> EventListResponse:
    events = await event_service.explore_events(lat, lng, radius_km)
    return EventListResponse(data=events, refresh_pending=False)


@router.get(
    "/events/{event_id}",
    response_model=EventResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a single event",
)
async def get_event(event_id: str, event_service: EventServiceDep) -> EventResponse:
    event = event_service.get_event_by_id(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail=f"Event '{event_id}' not found")
    return EventResponse(data=event)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return provider configuration, cache statistics and refresh activity."""
    state = request.app.state
    providers: dict[str, Any] = dict(getattr(state, "provider_registry", {}))

    caches: dict[str, dict[str, Any]] = {}
    rate_limit_pending: dict[str, int] = {}
    for provider in getattr(state, "providers", []):
        for name, stats in provider.cache_stats().items():
            caches[name] = stats.as_dict()
        rate_limit_pending[provider.get_provider_name()] = provider.rate_limiter.pending

    refreshes_in_flight: dict[str, int] = {}
    artist_service = getattr(state, "artist_service", None)
    if artist_service is not None:
        caches["swr-artists"] = artist_service.cache_stats().as_dict()
        refreshes_in_flight[artist_service.coordinator.name] = (
            artist_service.coordinator.in_flight_count
        )

    event_service = getattr(state, "event_service", None)
    if event_service is not None:
        for name, stats in event_service.cache_stats().items():
            caches[name] = stats.as_dict()
        for coordinator in event_service.coordinators:
            refreshes_in_flight[coordinator.name] = coordinator.in_flight_count

    event_finder = getattr(state, "event_finder", None)
    if event_finder is not None:
        for name, stats in event_finder.cache_stats().items():
            caches[name] = stats.as_dict()

    status = "healthy" if providers.get("ticketmaster", False) else "degraded"
    return HealthResponse(
        status=status,
        version=_VERSION,
        providers=providers,
        caches=caches,
        refreshes_in_flight=refreshes_in_flight,
        rate_limit_pending=rate_limit_pending,
    )
