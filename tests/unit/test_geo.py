"""Unit tests for geo-grid cache-key bucketing."""

from __future__ import annotations

import pytest

from src.utils.geo import filter_fingerprint, geo_cache_key, snap_coord, snap_radius


class TestSnapCoord:
    def test_rounds_to_one_decimal(self) -> None:
        assert snap_coord(40.4168) == "40.4"
        assert snap_coord(-3.7038) == "-3.7"

    def test_negative_zero_normalised(self) -> None:
        assert snap_coord(-0.01) == "0.0"
        assert snap_coord(0.01) == "0.0"

    def test_custom_precision(self) -> None:
        assert snap_coord(40.4168, decimals=0) == "40"
        assert snap_coord(40.4168, decimals=2) == "40.42"


class TestSnapRadius:
    @pytest.mark.parametrize(
        ("radius", "expected"),
        [(1, 25), (24.9, 25), (25, 50), (49, 50), (50, 75), (55, 75), (100, 125)],
    )
    def test_snaps_to_next_multiple_above(self, radius: float, expected: int) -> None:
        assert snap_radius(radius) == expected

    def test_snapped_radius_always_exceeds_input(self) -> None:
        for radius in (0.5, 10, 25, 80, 499.9, 804):
            assert snap_radius(radius) > radius

    def test_rejects_non_positive_step(self) -> None:
        with pytest.raises(ValueError):
            snap_radius(10, step=0)


class TestFilterFingerprint:
    def test_empty_is_all(self) -> None:
        assert filter_fingerprint(None) == "all"
        assert filter_fingerprint([]) == "all"
        assert filter_fingerprint(["", ""]) == "all"

    def test_order_and_duplicates_ignored(self) -> None:
        assert filter_fingerprint(["b", "a", "b"]) == "a,b"
        assert filter_fingerprint(["a", "b"]) == filter_fingerprint(["b", "a"])

    @pytest.mark.parametrize("bad_id", ["a,b", "a:b"])
    def test_rejects_ids_containing_separators(self, bad_id: str) -> None:
        with pytest.raises(ValueError):
            filter_fingerprint(["ok", bad_id])
        with pytest.raises(ValueError):
            geo_cache_key(40.4, -3.7, 50, [bad_id])


class TestGeoCacheKey:
    def test_nearby_queries_share_a_key(self) -> None:
        assert geo_cache_key(40.4168, -3.7038, 50) == geo_cache_key(40.42, -3.70, 55)

    def test_distant_queries_differ(self) -> None:
        assert geo_cache_key(40.4168, -3.7038, 50) != geo_cache_key(41.3874, 2.1686, 50)

    def test_radius_bucket_changes_key(self) -> None:
        assert geo_cache_key(40.4, -3.7, 20) != geo_cache_key(40.4, -3.7, 60)

    def test_filters_part_of_key(self) -> None:
        unfiltered = geo_cache_key(40.4, -3.7, 50)
        filtered = geo_cache_key(40.4, -3.7, 50, ["K8vZ9171ob7"])
        assert unfiltered.endswith(":all")
        assert filtered != unfiltered
        assert geo_cache_key(40.4, -3.7, 50, ["x", "y"]) == geo_cache_key(40.4, -3.7, 50, ["y", "x"])

    def test_key_layout(self) -> None:
        assert geo_cache_key(40.4168, -3.7038, 50) == "40.4:-3.7:75:all"
