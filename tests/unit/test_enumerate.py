"""
Unit tests for zoom parsing and tile enumeration
"""

import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.geo import bounding_box_from_radius, to_tile_index
from common.types import BoundingBoxDeg, GeoPoint, TileCoord
from tilekit.enumerate import count_tiles, enumerate_tiles, parse_zoom_levels, tile_range


class TestParseZoomLevels:
    """Test cases for parse_zoom_levels"""

    def test_range(self):
        assert parse_zoom_levels("12-14") == [12, 13, 14]

    def test_repeated_flags_are_deduplicated_and_sorted(self):
        assert parse_zoom_levels(["12", "12", "13"]) == [12, 13]
        assert parse_zoom_levels(["14", "10-11"]) == [10, 11, 14]

    def test_comma_list_with_ranges(self):
        assert parse_zoom_levels("10, 12-13") == [10, 12, 13]

    def test_ints_and_mixed_iterables(self):
        assert parse_zoom_levels(5) == [5]
        assert parse_zoom_levels([3, "1-2"]) == [1, 2, 3]

    def test_malformed_entries_are_dropped(self):
        assert parse_zoom_levels("abc") == []
        assert parse_zoom_levels("14-12") == []
        assert parse_zoom_levels("-3") == []
        assert parse_zoom_levels("1-2-3") == []
        assert parse_zoom_levels("7,x,8") == [7, 8]

    def test_empty(self):
        assert parse_zoom_levels(None) == []
        assert parse_zoom_levels("") == []
        assert parse_zoom_levels([]) == []


class TestEnumerateTiles:
    """Test cases for enumerate_tiles / tile_range"""

    def _bbox(self):
        return bounding_box_from_radius(GeoPoint(48.8566, 2.3522), 3000.0)

    def test_within_independent_rectangle(self):
        bbox = self._bbox()
        for z in (10, 13, 15):
            a = to_tile_index(bbox.max_lat, bbox.min_lon, z)
            b = to_tile_index(bbox.min_lat, bbox.max_lon, z)
            xs = sorted([a.x, b.x])
            ys = sorted([a.y, b.y])
            coords = list(enumerate_tiles(bbox, [z]))
            assert coords
            for c in coords:
                assert xs[0] <= c.x <= xs[1]
                assert ys[0] <= c.y <= ys[1]
            # rectangle is fully covered
            assert len(coords) == (xs[1] - xs[0] + 1) * (ys[1] - ys[0] + 1)

    def test_order_is_zoom_then_x_then_y(self):
        bbox = self._bbox()
        coords = list(enumerate_tiles(bbox, [13, 14]))
        keys = [c.as_tuple() for c in coords]
        assert keys == sorted(keys)
        assert coords[0].z == 13 and coords[-1].z == 14

    def test_zero_radius_yields_exactly_one_tile(self):
        bbox = bounding_box_from_radius(GeoPoint(37.7749, -122.4194), 0.0)
        assert list(enumerate_tiles(bbox, [10])) == [TileCoord(10, 163, 395)]

    def test_zoom_zero_is_whole_world(self):
        bbox = BoundingBoxDeg(min_lat=-80.0, max_lat=80.0, min_lon=-170.0, max_lon=170.0)
        assert list(enumerate_tiles(bbox, [0])) == [TileCoord(0, 0, 0)]

    def test_tile_range_orders_each_axis(self):
        bbox = self._bbox()
        min_x, max_x, min_y, max_y = tile_range(bbox, 14)
        assert min_x <= max_x
        assert min_y <= max_y

    def test_count_matches_enumeration(self):
        bbox = self._bbox()
        zooms = [11, 12, 13, 14]
        assert count_tiles(bbox, zooms) == len(list(enumerate_tiles(bbox, zooms)))
