"""Public interface definitions for all external service providers.

Every external API in BandPulse is accessed exclusively through the abstract
base classes defined in this package.  Concrete adapters implement these
interfaces and are injected at runtime by ``src/main.py``, so services and
tests never depend on a specific HTTP client.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    IMusicDatabaseProvider     →  MusicBrainzProvider
    IEventProvider             →  TicketmasterProvider
    ICacheProvider             →  TTLCache
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.event_provider import IEventProvider
from src.interfaces.music_db_provider import IMusicDatabaseProvider

__all__ = [
    "ICacheProvider",
    "IEventProvider",
    "IMusicDatabaseProvider",
]
