"""Abstract base class for cache service providers.

Defines the contract for the bounded key-value caches used across BandPulse:
raw provider responses, mapped domain records, and the backing store of the
stale-while-revalidate coordinator.

Unlike most provider contracts in this package the cache operations are
**synchronous**.  Running inside a single asyncio event loop, a synchronous
method can never be interleaved with another coroutine, so multi-step
mutations (expire-then-return, evict-then-insert, sweep) are atomic without
a lock.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

V = TypeVar("V")


class ICacheProvider(ABC, Generic[V]):
    """Contract for bounded, time-expiring key-value caches."""

    @abstractmethod
    def get(self, key: str) -> V | None:
        """Return the value stored under *key* if present and not expired.

        Implementations must treat an expired entry as a miss and may remove
        it as a side effect.
        """

    @abstractmethod
    def get_stale(self, key: str) -> V | None:
        """Return the value stored under *key* regardless of its age.

        Intended for error-path fallbacks; a read that also needs freshness
        should use :meth:`lookup`.
        """

    @abstractmethod
    def lookup(self, key: str) -> tuple[V | None, bool]:
        """Return ``(value, is_fresh)`` for *key* from a single clock reading.

        ``value`` is the stored value regardless of age (``None`` when
        absent).  Unlike :meth:`get`, an expired entry is never removed, so
        a caller can serve it as the stale fallback.
        """

    @abstractmethod
    def set(self, key: str, value: V) -> None:
        """Store *value* under *key*, replacing any existing entry."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if the key existed."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Current number of entries, expired ones included until swept."""
