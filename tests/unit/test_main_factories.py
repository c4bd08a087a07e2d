"""Unit tests for the component factory and app factory in src/main.py.

No real network calls are made: the lifespan only builds clients and
starts cache sweepers, and the health endpoint reads local state.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tests.conftest import make_settings


# ======================================================================
# _build_all
# ======================================================================


class TestBuildAll:
    """Tests for the _build_all factory - wiring of providers and services."""

    @pytest.mark.asyncio
    async def test_builds_every_component(self) -> None:
        from src.main import _build_all
        from src.providers.event.ticketmaster_provider import TicketmasterProvider
        from src.providers.music_db.musicbrainz_provider import MusicBrainzProvider
        from src.services.artist_service import ArtistService
        from src.services.event_finder import EventFinder
        from src.services.event_service import EventService

        components = _build_all(make_settings())

        musicbrainz, ticketmaster = components["providers"]
        assert isinstance(musicbrainz, MusicBrainzProvider)
        assert isinstance(ticketmaster, TicketmasterProvider)
        assert isinstance(components["event_finder"], EventFinder)
        assert isinstance(components["artist_service"], ArtistService)
        assert isinstance(components["event_service"], EventService)
        await components["http_client"].aclose()

    @pytest.mark.asyncio
    async def test_providers_have_separate_rate_limiters(self) -> None:
        from src.main import _build_all

        components = _build_all(make_settings(musicbrainz_rate_limit=1.1))
        musicbrainz, ticketmaster = components["providers"]

        assert musicbrainz.rate_limiter is not ticketmaster.rate_limiter
        assert musicbrainz.rate_limiter.min_interval == pytest.approx(1.1)
        await components["http_client"].aclose()

    @pytest.mark.asyncio
    async def test_registry_reflects_api_key(self) -> None:
        from src.main import _build_all

        with_key = _build_all(make_settings(ticketmaster_api_key="abc"))
        without_key = _build_all(make_settings(ticketmaster_api_key=""))

        assert with_key["provider_registry"] == {"musicbrainz": True, "ticketmaster": True}
        assert without_key["provider_registry"]["ticketmaster"] is False
        await with_key["http_client"].aclose()
        await without_key["http_client"].aclose()


# ======================================================================
# create_app
# ======================================================================


class TestCreateApp:
    """Tests for the create_app factory and its lifespan."""

    def test_returns_fastapi_app(self) -> None:
        from src.main import create_app

        app = create_app()
        assert isinstance(app, FastAPI)
        assert any(getattr(route, "path", "") == "/api/v1/health" for route in app.routes)

    def test_lifespan_populates_state(self) -> None:
        from src.main import create_app

        with TestClient(create_app()) as client:
            response = client.get("/api/v1/health")
            state = client.app.state

            assert response.status_code == 200
            assert response.json()["status"] in {"healthy", "degraded"}
            assert hasattr(state, "artist_service")
            assert hasattr(state, "event_service")
            assert len(state.providers) == 2
