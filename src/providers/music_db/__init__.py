"""Artist-identity provider implementations.

    MusicBrainzProvider  - MusicBrainz open API (no key, descriptive
                           User-Agent required). Rate limit: 1 req/sec.
"""

from src.providers.music_db.musicbrainz_provider import MusicBrainzProvider

__all__ = ["MusicBrainzProvider"]
