"""In-memory TTL cache with LRU eviction, stale reads and hit/miss statistics.

Entries live in a ``cachetools.LRUCache`` which keeps them in recency order
and evicts the least-recently-used entry when a *new* key is inserted into a
full cache.  Expiry is tracked per entry against an injectable ``timer`` (the
same knob ``cachetools.TTLCache`` exposes), but unlike ``cachetools.TTLCache``
an expired entry is not discarded the moment it expires: it stays readable
through :meth:`TTLCache.get_stale` until a read, the periodic sweep, or LRU
pressure removes it.  That is what lets provider clients fall back to the
last known response when an upstream call fails.

# ─── ENTRY LIFECYCLE ──────────────────────────────────────────────────
#
#   set()           → entry created (created_at = last_accessed_at = now)
#   get() hit       → last_accessed_at = now, moved to most-recent end
#   get() expired   → entry removed, counted as a miss
#   get_stale()     → value returned, entry untouched
#   lookup()        → value + freshness from one timer reading, never removes
#   sweep()         → every expired entry removed
#   set() when full → least-recently-accessed entry evicted first
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable, Hashable
from dataclasses import asdict, dataclass
from typing import Any, Generic, TypeVar

import structlog
from cachetools import Cache, LRUCache

from src.interfaces.cache_provider import ICacheProvider
from src.utils.logging import get_logger

V = TypeVar("V")

_logger: structlog.BoundLogger = get_logger(__name__)

_DEFAULT_SWEEP_INTERVAL = 300.0
_DEFAULT_STATS_INTERVAL = 50


@dataclass
class CacheEntry(Generic[V]):
    """A cached value plus the timestamps that drive expiry and eviction."""

    value: V
    created_at: float
    last_accessed_at: float


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time snapshot of a cache's counters."""

    name: str
    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int
    hit_rate: float
    ttl: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class _LRUStore(LRUCache):
    """``LRUCache`` that reports every eviction back to its owner."""

    def __init__(self, maxsize: int, on_evict: Callable[[Hashable, CacheEntry], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self) -> tuple[Hashable, CacheEntry]:
        # cachetools only calls popitem() to make room for a new key.
        key, entry = super().popitem()
        self._on_evict(key, entry)
        return key, entry

    def peek(self, key: Hashable) -> CacheEntry | None:
        """Return the entry for *key* without refreshing its recency."""
        if key not in self:
            return None
        return Cache.__getitem__(self, key)


class TTLCache(ICacheProvider[V]):
    """Bounded cache with time-based expiry and least-recently-used eviction.

    Parameters
    ----------
    name:
        Identifier used in log records and statistics.
    ttl:
        Seconds after creation at which an entry is considered expired.
    max_size:
        Maximum number of entries; inserting a new key into a full cache
        evicts the entry with the oldest access time.
    stats_interval:
        Log a ``cache_stats`` record every N ``get`` calls (0 disables).
    sweep_interval:
        Seconds between background sweeps once :meth:`start` is called.
    timer:
        Zero-argument callable returning the current time in seconds.
        Defaults to :func:`time.monotonic`; tests inject a fake.
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        max_size: int,
        *,
        stats_interval: int = _DEFAULT_STATS_INTERVAL,
        sweep_interval: float = _DEFAULT_SWEEP_INTERVAL,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")

        self.name = name
        self.ttl = ttl
        self.max_size = max_size
        self._stats_interval = stats_interval
        self._sweep_interval = sweep_interval
        self._timer = timer

        self._store: _LRUStore = self._new_store()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._op_count = 0

        self._sweeper: asyncio.Task | None = None

        _logger.info("cache_initialized", cache=name, ttl=ttl, max_size=max_size)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    def get(self, key: str) -> V | None:
        """Return the cached value, or ``None`` on a miss or expiry."""
        entry = self._store.peek(key)

        if entry is None:
            self._misses += 1
            self._record_op()
            return None

        now = self._timer()
        if now - entry.created_at > self.ttl:
            del self._store[key]
            self._misses += 1
            self._record_op()
            return None

        # Indexing (not peek) moves the key to the most-recent end.
        entry = self._store[key]
        entry.last_accessed_at = now
        self._hits += 1
        self._record_op()
        return entry.value

    def get_stale(self, key: str) -> V | None:
        """Return the value even if expired.  Does not affect stats or recency."""
        entry = self._store.peek(key)
        return entry.value if entry is not None else None

    def lookup(self, key: str) -> tuple[V | None, bool]:
        """Return ``(value, is_fresh)``; a fresh read counts as a hit.

        Freshness is decided from one timer reading and an expired entry is
        left in place for the caller to serve as stale.
        """
        entry = self._store.peek(key)
        if entry is None:
            self._misses += 1
            self._record_op()
            return None, False

        now = self._timer()
        if now - entry.created_at > self.ttl:
            self._misses += 1
            self._record_op()
            return entry.value, False

        entry = self._store[key]
        entry.last_accessed_at = now
        self._hits += 1
        self._record_op()
        return entry.value, True

    def set(self, key: str, value: V) -> None:
        """Store *value*, evicting the least-recently-used entry if full."""
        now = self._timer()
        self._store[key] = CacheEntry(value=value, created_at=now, last_accessed_at=now)

    def has(self, key: str) -> bool:
        entry = self._store.peek(key)
        if entry is None:
            return False
        return self._timer() - entry.created_at <= self.ttl

    def delete(self, key: str) -> bool:
        if key in self._store:
            del self._store[key]
            return True
        return False

    def clear(self) -> None:
        # A fresh store avoids MutableMapping.clear(), which would route
        # every removal through popitem() and count it as an eviction.
        self._store = self._new_store()
        _logger.debug("cache_cleared", cache=self.name)

    @property
    def size(self) -> int:
        return len(self._store)

    # ------------------------------------------------------------------
    # Maintenance & observability
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove every expired entry.  Returns the number removed."""
        now = self._timer()
        removed = 0
        for key in list(self._store):
            entry = self._store.peek(key)
            if entry is not None and now - entry.created_at > self.ttl:
                del self._store[key]
                removed += 1

        if removed:
            _logger.debug(
                "cache_swept",
                cache=self.name,
                removed=removed,
                remaining=len(self._store),
            )
        return removed

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            name=self.name,
            size=len(self._store),
            max_size=self.max_size,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            hit_rate=(self._hits / total) if total else 0.0,
            ttl=self.ttl,
        )

    def start(self) -> None:
        """Start the periodic sweep task.  Requires a running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        loop = asyncio.get_running_loop()
        self._sweeper = loop.create_task(self._sweep_forever(), name=f"cache-sweep:{self.name}")

    async def close(self) -> None:
        """Stop the sweep task and drop every entry."""
        task, self._sweeper = self._sweeper, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.clear()

    @property
    def is_sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _new_store(self) -> _LRUStore:
        return _LRUStore(maxsize=self.max_size, on_evict=self._on_evict)

    def _on_evict(self, key: Hashable, entry: CacheEntry) -> None:
        self._evictions += 1
        _logger.debug("cache_evicted", cache=self.name, key=key)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    def _record_op(self) -> None:
        self._op_count += 1
        if self._stats_interval > 0 and self._op_count % self._stats_interval == 0:
            stats = self.stats()
            _logger.info(
                "cache_stats",
                cache=stats.name,
                size=stats.size,
                max_size=stats.max_size,
                hits=stats.hits,
                misses=stats.misses,
                evictions=stats.evictions,
                hit_rate=f"{stats.hit_rate * 100:.1f}%",
            )
