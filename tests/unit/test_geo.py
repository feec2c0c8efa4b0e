"""
Unit tests for Web Mercator tile math
"""

import math
import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.geo import (
    EARTH_RADIUS_M,
    MAX_MERCATOR_LAT,
    bounding_box_from_radius,
    clamp_lat,
    haversine_m,
    to_tile_index,
)
from common.types import GeoPoint, TileCoord


class TestToTileIndex:
    """Test cases for to_tile_index"""

    def test_root_tile(self):
        """Zoom 0 has a single tile covering the world"""
        assert to_tile_index(0.0, 0.0, 0) == TileCoord(0, 0, 0)

    def test_known_tile_san_francisco(self):
        """Downtown San Francisco at z10 is the well-known 10/163/395"""
        t = to_tile_index(37.7749, -122.4194, 10)
        assert t.as_tuple() == (10, 163, 395)

    def test_indices_always_in_range(self):
        """x/y stay within [0, 2^z - 1] across the valid domain"""
        lats = [-MAX_MERCATOR_LAT, -60.0, -1e-9, 0.0, 33.3, 85.0, MAX_MERCATOR_LAT]
        lons = [-180.0, -179.999, -0.5, 0.0, 90.0, 179.999, 180.0]
        for z in range(0, 21):
            n = 2 ** z
            for lat in lats:
                for lon in lons:
                    t = to_tile_index(lat, lon, z)
                    assert 0 <= t.x <= n - 1
                    assert 0 <= t.y <= n - 1
                    assert t.z == z

    def test_poles_are_clamped(self):
        """Latitudes beyond the projection limit land on the first/last row"""
        z = 5
        assert to_tile_index(90.0, 0.0, z).y == 0
        assert to_tile_index(-90.0, 0.0, z).y == 2 ** z - 1

    def test_antimeridian_is_clamped(self):
        """lon=180 would be one past the last column without clamping"""
        z = 3
        assert to_tile_index(0.0, 180.0, z).x == 2 ** z - 1
        assert to_tile_index(0.0, -180.0, z).x == 0
        assert to_tile_index(0.0, 540.0, z).x == 2 ** z - 1

    def test_y_grows_southward(self):
        north = to_tile_index(50.0, 10.0, 8)
        south = to_tile_index(40.0, 10.0, 8)
        assert south.y > north.y

    def test_very_high_zoom(self):
        """Zoom levels past float range still project, consistent with lower zooms"""
        z = 1100
        t = to_tile_index(10.0, 10.0, z)
        low = to_tile_index(10.0, 10.0, 20)
        assert t.z == z
        assert 0 <= t.x < 2 ** z
        assert 0 <= t.y < 2 ** z
        assert t.x >> (z - 20) == low.x
        assert t.y >> (z - 20) == low.y
        assert to_tile_index(0.0, 180.0, z).x == 2 ** z - 1

    def test_clamp_lat(self):
        assert clamp_lat(89.0) == pytest.approx(MAX_MERCATOR_LAT)
        assert clamp_lat(-89.0) == pytest.approx(-MAX_MERCATOR_LAT)
        assert clamp_lat(12.5) == 12.5


class TestBoundingBox:
    """Test cases for bounding_box_from_radius"""

    def test_zero_radius_degenerates_to_point(self):
        c = GeoPoint(37.7749, -122.4194)
        bb = bounding_box_from_radius(c, 0.0)
        assert bb.min_lat == bb.max_lat == c.lat
        assert bb.min_lon == bb.max_lon == c.lon

    def test_equator_is_square(self):
        bb = bounding_box_from_radius(GeoPoint(0.0, 0.0), 1000.0)
        expected = 1000.0 / EARTH_RADIUS_M * 180.0 / math.pi
        assert bb.max_lat == pytest.approx(expected)
        assert bb.max_lon == pytest.approx(expected)
        assert bb.min_lat == pytest.approx(-expected)

    def test_longitude_delta_inflates_with_latitude(self):
        bb = bounding_box_from_radius(GeoPoint(60.0, 10.0), 1000.0)
        lat_delta = bb.max_lat - 60.0
        lon_delta = bb.max_lon - 10.0
        assert lon_delta == pytest.approx(2.0 * lat_delta, rel=1e-9)

    def test_pole_center_stays_finite(self):
        """cos(90°) is ~0; the divisor floor keeps the box finite"""
        bb = bounding_box_from_radius(GeoPoint(90.0, 0.0), 10.0)
        assert math.isfinite(bb.min_lon) and math.isfinite(bb.max_lon)
        assert bb.max_lon > bb.min_lon

    def test_radius_roughly_matches_haversine(self):
        c = GeoPoint(45.0, 7.0)
        bb = bounding_box_from_radius(c, 5000.0)
        assert haversine_m(c.lat, c.lon, bb.max_lat, c.lon) == pytest.approx(5000.0, rel=1e-6)
        assert haversine_m(c.lat, c.lon, c.lat, bb.max_lon) >= 4999.0


class TestGeoPoint:
    """Test cases for GeoPoint validation"""

    def test_rejects_out_of_range_latitude(self):
        with pytest.raises(ValueError):
            GeoPoint(91.0, 0.0)

    def test_rejects_nan(self):
        with pytest.raises(ValueError):
            GeoPoint(float("nan"), 0.0)

    def test_longitude_unconstrained(self):
        assert GeoPoint(0.0, 200.0).lon == 200.0


class TestTileCoord:
    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            TileCoord(1, 2, 0)
        with pytest.raises(ValueError):
            TileCoord(-1, 0, 0)

    def test_str(self):
        assert str(TileCoord(3, 1, 2)) == "3/1/2"
