"""Geo-grid cache-key bucketing for location queries.

Location searches arrive with arbitrary precision: a map pin dragged a few
hundred metres or a radius slider nudged from 50 to 55 km would otherwise
produce a brand new cache key and a brand new upstream call.  Snapping every
component to a coarse grid collapses those near-duplicate queries onto one
key, trading result precision for cache-hit rate.

Only the cache KEY is coarsened.  Provider calls always use the caller's
full-precision coordinates.

Grid sizes (tunable, not a contract):
    decimals=1       → ~11 km latitude cells
    decimals=0       → ~111 km latitude cells
    radius_step=25   → 50 km and 55 km both land in the 75 km bucket
"""

from __future__ import annotations

import math
from collections.abc import Iterable

DEFAULT_COORD_DECIMALS = 1
DEFAULT_RADIUS_STEP_KM = 25.0

_NO_FILTER = "all"
_FILTER_SEPARATOR = ","
_KEY_SEPARATOR = ":"


def snap_coord(value: float, decimals: int = DEFAULT_COORD_DECIMALS) -> str:
    """Round a latitude/longitude to *decimals* places, as a fixed-point string.

    ``-0.0`` is normalised to ``0.0`` so both hemispheres of the zero line
    share a bucket string.
    """
    rounded = round(value, decimals)
    if rounded == 0:
        rounded = 0.0
    return f"{rounded:.{decimals}f}"


def snap_radius(radius_km: float, step: float = DEFAULT_RADIUS_STEP_KM) -> int:
    """Snap *radius_km* up to the next multiple of *step* strictly above it.

    The snapped radius always covers more ground than the caller asked for,
    and an exact multiple moves up with its neighbours:
    ``snap_radius(50) == snap_radius(55) == 75``, ``snap_radius(49) == 50``.
    """
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    return int((math.floor(max(radius_km, 0.0) / step) + 1) * step)


def filter_fingerprint(filter_ids: Iterable[str] | None) -> str:
    """Sorted, de-duplicated, comma-joined filter ids; ``"all"`` when empty.

    Ids are joined unescaped, so an id containing ``","`` or ``":"`` (the
    separators of the fingerprint and of :func:`geo_cache_key`) is rejected
    with ``ValueError``.  MusicBrainz MBIDs never contain either.
    """
    if not filter_ids:
        return _NO_FILTER
    unique = sorted({fid for fid in filter_ids if fid})
    for fid in unique:
        if _FILTER_SEPARATOR in fid or _KEY_SEPARATOR in fid:
            raise ValueError(f"filter id must not contain separators: {fid!r}")
    return _FILTER_SEPARATOR.join(unique) if unique else _NO_FILTER


def geo_cache_key(
    latitude: float,
    longitude: float,
    radius_km: float,
    filter_ids: Iterable[str] | None = None,
    *,
    decimals: int = DEFAULT_COORD_DECIMALS,
    radius_step: float = DEFAULT_RADIUS_STEP_KM,
) -> str:
    """Build the bucketed cache key for a location query.

    Two queries whose snapped coordinates, snapped radius and filter sets
    match produce the same key regardless of input order or precision::

        >>> geo_cache_key(40.4168, -3.7038, 50) == geo_cache_key(40.42, -3.70, 55)
        True
    """
    return _KEY_SEPARATOR.join(
        (
            snap_coord(latitude, decimals),
            snap_coord(longitude, decimals),
            str(snap_radius(radius_km, radius_step)),
            filter_fingerprint(filter_ids),
        )
    )
