"""Integration tests for FastAPI API endpoints using TestClient."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from src.api.routes import router as api_router
from src.interfaces.event_provider import IEventProvider
from src.interfaces.music_db_provider import IMusicDatabaseProvider
from src.models.refresh import Resolution
from src.providers.event.ticketmaster_provider import TicketmasterProvider
from src.services.artist_service import ArtistService
from src.services.event_finder import EventFinder
from src.services.event_service import EventService
from src.utils.errors import ConfigurationError, ProviderUnavailableError
from tests.conftest import make_artist, make_event, make_settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_test_app() -> tuple[FastAPI, MagicMock, MagicMock]:
    """Create a FastAPI app with mocked services on ``app.state``."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.include_router(api_router)

    artist_service = MagicMock(spec=ArtistService)
    event_service = MagicMock(spec=EventService)
    event_service.explore_events = AsyncMock(return_value=[])

    app.state.artist_service = artist_service
    app.state.event_service = event_service
    return app, artist_service, event_service


@pytest.fixture()
def api() -> tuple[TestClient, MagicMock, MagicMock]:
    app, artist_service, event_service = _create_test_app()
    return TestClient(app), artist_service, event_service


# ---------------------------------------------------------------------------
# Artists
# ---------------------------------------------------------------------------


class TestArtistEndpoints:
    def test_search_returns_envelope(self, api) -> None:
        client, artist_service, _ = api
        artist_service.search_artists.return_value = Resolution(
            value=[make_artist()], refresh_pending=False
        )

        response = client.get("/api/v1/artists/search", params={"q": "Radiohead", "limit": 5})

        assert response.status_code == 200
        body = response.json()
        assert body["refresh_pending"] is False
        assert body["data"][0]["name"] == "Radiohead"
        artist_service.search_artists.assert_called_once_with("Radiohead", 5)

    def test_cold_search_is_pending(self, api) -> None:
        client, artist_service, _ = api
        artist_service.search_artists.return_value = Resolution(value=None, refresh_pending=True)

        body = client.get("/api/v1/artists/search", params={"q": "Radiohead"}).json()

        assert body == {"data": [], "refresh_pending": True}

    def test_search_requires_query(self, api) -> None:
        client, _, _ = api
        assert client.get("/api/v1/artists/search").status_code == 422
        assert client.get("/api/v1/artists/search", params={"q": ""}).status_code == 422
        assert (
            client.get("/api/v1/artists/search", params={"q": "x", "limit": 101}).status_code
            == 422
        )

    def test_get_artist_pending(self, api) -> None:
        client, artist_service, _ = api
        artist_service.get_artist_by_mbid.return_value = Resolution(
            value=None, refresh_pending=True
        )

        body = client.get("/api/v1/artists/mbid/abc").json()

        assert body == {"data": None, "refresh_pending": True}

    def test_artist_events_wait_for_identity(self, api) -> None:
        client, artist_service, event_service = api
        artist_service.get_artist_by_mbid.return_value = Resolution(
            value=None, refresh_pending=True
        )

        body = client.get("/api/v1/artists/abc/events").json()

        assert body == {"data": [], "refresh_pending": True}
        event_service.get_artist_events.assert_not_called()

    def test_artist_events(self, api) -> None:
        client, artist_service, event_service = api
        artist = make_artist()
        artist_service.get_artist_by_mbid.return_value = Resolution(
            value=artist, refresh_pending=False
        )
        event_service.get_artist_events.return_value = Resolution(
            value=[make_event("E1")], refresh_pending=True
        )

        body = client.get(f"/api/v1/artists/{artist.mbid}/events").json()

        assert body["refresh_pending"] is True
        assert [event["external_id"] for event in body["data"]] == ["E1"]
        event_service.get_artist_events.assert_called_once_with(artist)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class TestEventEndpoints:
    def test_near_without_artists(self, api) -> None:
        client, artist_service, event_service = api
        event_service.search_events_near.return_value = Resolution(
            value=[make_event("E1")], refresh_pending=False
        )

        response = client.get("/api/v1/events/near", params={"lat": 40.4, "lng": -3.7})

        assert response.status_code == 200
        event_service.search_events_near.assert_called_once_with(40.4, -3.7, 50.0, None)
        artist_service.get_artists.assert_not_called()

    def test_near_with_artist_ids(self, api) -> None:
        client, artist_service, event_service = api
        artists = [make_artist("a", "A")]
        artist_service.get_artists.return_value = Resolution(value=artists, refresh_pending=True)
        event_service.search_events_near.return_value = Resolution(
            value=[], refresh_pending=False
        )

        body = client.get(
            "/api/v1/events/near",
            params={"lat": 40.4, "lng": -3.7, "radius_km": 100, "artist_ids": "a, b,"},
        ).json()

        artist_service.get_artists.assert_called_once_with(["a", "b"])
        event_service.search_events_near.assert_called_once_with(40.4, -3.7, 100.0, artists)
        assert body["refresh_pending"] is True

    def test_near_with_unresolved_artists(self, api) -> None:
        client, artist_service, event_service = api
        artist_service.get_artists.return_value = Resolution(value=[], refresh_pending=True)

        body = client.get(
            "/api/v1/events/near", params={"lat": 40.4, "lng": -3.7, "artist_ids": "x"}
        ).json()

        assert body == {"data": [], "refresh_pending": True}
        event_service.search_events_near.assert_not_called()

    @pytest.mark.parametrize(
        "params",
        [
            {"lat": 91, "lng": 0},
            {"lat": 0, "lng": 181},
            {"lat": 0, "lng": 0, "radius_km": 0},
            {"lat": 0, "lng": 0, "radius_km": 900},
            {"lng": 0},
        ],
    )
    def test_near_validates_coordinates(self, api, params: dict) -> None:
        client, _, _ = api
        assert client.get("/api/v1/events/near", params=params).status_code == 422

    def test_explore(self, api) -> None:
        client, _, event_service = api
        event_service.explore_events.return_value = [make_event("E1", artist_id="")]

        body = client.get(
            "/api/v1/events/explore", params={"lat": 40.4, "lng": -3.7, "radius_km": 25}
        ).json()

        assert body["refresh_pending"] is False
        assert body["data"][0]["external_id"] == "E1"

    def test_explore_unavailable_maps_to_503(self, api) -> None:
        client, _, event_service = api
        event_service.explore_events.side_effect = ProviderUnavailableError(
            "Ticketmaster down", provider_name="ticketmaster"
        )

        response = client.get("/api/v1/events/explore", params={"lat": 40.4, "lng": -3.7})

        assert response.status_code == 503
        assert response.json() == {
            "error": "ProviderUnavailableError",
            "detail": "Ticketmaster down",
        }

    def test_other_application_errors_map_to_500(self, api) -> None:
        client, _, event_service = api
        event_service.explore_events.side_effect = ConfigurationError("unexpected")

        response = client.get("/api/v1/events/explore", params={"lat": 40.4, "lng": -3.7})

        assert response.status_code == 500
        assert response.json()["error"] == "ConfigurationError"

    def test_get_event(self, api) -> None:
        client, _, event_service = api
        event_service.get_event_by_id.return_value = make_event("E1")

        body = client.get("/api/v1/events/E1").json()

        assert body["data"]["external_id"] == "E1"
        assert body["data"]["venue"]["location"]["coordinates"] == [-3.7038, 40.4168]

    def test_get_event_not_found(self, api) -> None:
        client, _, event_service = api
        event_service.get_event_by_id.return_value = None

        response = client.get("/api/v1/events/missing")

        assert response.status_code == 404
        assert "missing" in response.json()["detail"]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealthEndpoint:
    def test_reports_caches_and_refreshes(self) -> None:
        settings = make_settings()
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        )
        ticketmaster = TicketmasterProvider(settings, http_client)
        music_db = MagicMock(spec=IMusicDatabaseProvider)
        finder = EventFinder(MagicMock(spec=IEventProvider), settings)

        app = FastAPI()
        app.include_router(api_router)
        app.state.provider_registry = {"musicbrainz": True, "ticketmaster": True}
        app.state.providers = [ticketmaster]
        app.state.artist_service = ArtistService(music_db, settings)
        app.state.event_finder = finder
        app.state.event_service = EventService(finder, settings)

        body = TestClient(app).get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"
        assert set(body["caches"]) >= {
            "tm-http-events",
            "tm-http-attractions",
            "swr-artists",
            "swr-artist-events",
            "swr-location-events",
            "artist-events",
            "location-events",
            "event-by-id",
            "attraction-ids",
        }
        assert body["refreshes_in_flight"] == {
            "artists": 0,
            "artist-events": 0,
            "location-events": 0,
        }
        assert body["rate_limit_pending"] == {"ticketmaster": 0}

    def test_degraded_without_ticketmaster(self) -> None:
        app = FastAPI()
        app.include_router(api_router)
        app.state.provider_registry = {"musicbrainz": True, "ticketmaster": False}

        body = TestClient(app).get("/api/v1/health").json()

        assert body["status"] == "degraded"
        assert body["caches"] == {}


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------


class TestRequestLogging:
    def _client(self) -> TestClient:
        app, _, event_service = _create_test_app()
        app.add_middleware(RequestLoggingMiddleware)
        event_service.get_event_by_id.return_value = None
        return TestClient(app)

    def test_echoes_caller_request_id(self) -> None:
        response = self._client().get("/api/v1/events/x", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_generates_request_id(self) -> None:
        response = self._client().get("/api/v1/events/x")
        assert len(response.headers["X-Request-ID"]) == 32
