"""Cache providers.

In-memory TTL caches with LRU eviction, used at three layers:

1. Raw provider responses inside each HTTP provider (short TTL).
2. Mapped domain records inside :class:`~src.services.event_finder.EventFinder`.
3. The backing store of each :class:`~src.services.refresh_coordinator.RefreshCoordinator`.

TTLCache is process-local - horizontally scaled instances each keep their own
copy.  A shared backend would implement ICacheProvider without changing any
business logic.
"""

from src.providers.cache.ttl_cache import CacheEntry, CacheStats, TTLCache

__all__ = ["CacheEntry", "CacheStats", "TTLCache"]
