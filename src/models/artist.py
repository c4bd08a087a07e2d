"""Artist identity models.

MusicBrainz is the source of truth for artist identity: the MusicBrainz ID
(MBID) is the canonical, stable identifier every other record keys on.
Models are frozen so a cached instance can be shared between requests
without defensive copies.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ArtistAlias(BaseModel):
    """Alternative name or spelling (e.g. ``"RHCP"`` for Red Hot Chili Peppers)."""

    model_config = ConfigDict(frozen=True)

    name: str
    sort_name: str | None = None
    locale: str | None = None
    primary: bool | None = None
    type: str | None = None


class ArtistArea(BaseModel):
    """Country or region of origin."""

    model_config = ConfigDict(frozen=True)

    name: str
    iso_3166_1: str | None = None  # ISO 3166-1 alpha-2 country code


class Artist(BaseModel):
    """Normalised artist identity record."""

    model_config = ConfigDict(frozen=True)

    mbid: str
    name: str
    sort_name: str | None = None
    disambiguation: str | None = None
    type: str | None = None  # "Person", "Group", "Orchestra", ...
    country: str | None = None
    area: ArtistArea | None = None
    aliases: list[ArtistAlias] = Field(default_factory=list)
    score: int | None = Field(default=None, ge=0, le=100)  # search relevance
    fetched_at: datetime = Field(default_factory=_utcnow)
    fetch_source: str = "musicbrainz"
