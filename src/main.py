"""BandPulse FastAPI application entry point.

Wires together providers, caches, refresh coordinators and routes via
dependency injection.  Loads configuration from the environment / ``.env``
and configures structured logging.

# ─── COMPONENT GRAPH ──────────────────────────────────────────────────
#
#   httpx.AsyncClient (shared)
#      ├── MusicBrainzProvider ──→ ArtistService (SWR)
#      └── TicketmasterProvider ─→ EventFinder ──→ EventService (SWR)
#
# Every provider owns its own RateLimitedQueue and response caches;
# nothing is a module-level singleton.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.settings import Settings
from src.providers.event.ticketmaster_provider import TicketmasterProvider
from src.providers.music_db.musicbrainz_provider import MusicBrainzProvider
from src.services.artist_service import ArtistService
from src.services.event_finder import EventFinder
from src.services.event_service import EventService
from src.utils.logging import configure_logging, get_logger

_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
    app_env=settings.app_env,
)
_logger: structlog.BoundLogger = get_logger(__name__)


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    # -- Shared resources --
    http_client = httpx.AsyncClient(
        timeout=max(app_settings.musicbrainz_timeout, app_settings.ticketmaster_timeout),
        follow_redirects=True,
    )

    # -- Providers (each with its own queue and response caches) --
    musicbrainz = MusicBrainzProvider(app_settings, http_client)
    ticketmaster = TicketmasterProvider(app_settings, http_client)

    # -- Services --
    event_finder = EventFinder(ticketmaster, app_settings)
    artist_service = ArtistService(musicbrainz, app_settings)
    event_service = EventService(event_finder, app_settings)

    configured = app_settings.get_configured_providers()
    provider_registry = {
        "musicbrainz": "musicbrainz" in configured,
        "ticketmaster": "ticketmaster" in configured,
    }

    return {
        "http_client": http_client,
        "providers": [musicbrainz, ticketmaster],
        "event_finder": event_finder,
        "artist_service": artist_service,
        "event_service": event_service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build all components on startup; drain refreshes and release resources on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    # Sweepers for the response and domain caches.  SWR stores are not
    # swept: their expired entries are the stale values served on reads.
    for provider in components["providers"]:
        provider.start()
    components["event_finder"].start()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        providers=components["provider_registry"],
    )

    yield

    # -- Shutdown: let refreshes finish, then release caches and the client --
    artist_service: ArtistService = components["artist_service"]
    event_service: EventService = components["event_service"]
    await artist_service.drain()
    await event_service.drain()

    await artist_service.close()
    await event_service.close()
    await components["event_finder"].close()
    for provider in components["providers"]:
        await provider.close()

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="Refreshes drained, HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="BandPulse API",
        version=_VERSION,
        description=(
            "Artist identity from MusicBrainz and concert listings from "
            "Ticketmaster, served stale-while-revalidate from in-memory caches."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
