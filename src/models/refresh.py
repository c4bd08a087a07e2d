"""Value types shared by the stale-while-revalidate layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, NamedTuple, TypeVar

T = TypeVar("T")


class RefreshKey(NamedTuple):
    """Composite key for one logically refreshable resource.

    ``kind`` names the resource family ("artist-search", "artist-mbid",
    "artist-events", ...) so identical ids from unrelated families never
    deduplicate against each other.  ``kind`` must not contain ``":"``:
    :meth:`cache_key` relies on the first colon separating the two parts, so
    ``key`` may contain colons freely.
    """

    kind: str
    key: str

    def cache_key(self) -> str:
        if ":" in self.kind:
            raise ValueError(f"refresh kind must not contain ':': {self.kind!r}")
        return f"{self.kind}:{self.key}"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    """Result of a stale-while-revalidate read.

    Attributes
    ----------
    value:
        The freshest value available right now (fresh or stale), or ``None``
        when nothing has ever been fetched for the key.
    refresh_pending:
        ``True`` when the value is stale or missing and a background refresh
        is running; clients should re-poll shortly.
    """

    value: T | None
    refresh_pending: bool
