"""Pydantic response schemas for the BandPulse API.

Every data endpoint answers with the same envelope::

    {"data": ..., "refresh_pending": bool}

``refresh_pending`` is ``True`` when the data is stale or missing and a
background refresh is running; clients should re-poll shortly.  Errors use
:class:`ErrorResponse`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.models.artist import Artist
from src.models.event import Event


class ArtistListResponse(BaseModel):
    """Artist search results."""

    data: list[Artist] = Field(default_factory=list)
    refresh_pending: bool = False


class ArtistResponse(BaseModel):
    """A single artist; ``data`` is ``None`` until the first refresh lands."""

    data: Artist | None = None
    refresh_pending: bool = False


class EventListResponse(BaseModel):
    """Concert listings, sorted by date."""

    data: list[Event] = Field(default_factory=list)
    refresh_pending: bool = False


class EventResponse(BaseModel):
    data: Event
    refresh_pending: bool = False


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
    caches: dict[str, dict[str, Any]] = Field(default_factory=dict)
    refreshes_in_flight: dict[str, int] = Field(default_factory=dict)
    rate_limit_pending: dict[str, int] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
