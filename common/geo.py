from __future__ import annotations

import math
from fractions import Fraction

from common.types import BoundingBoxDeg, GeoPoint, TileCoord
from common.utils import clamp


# --- Spherical Web Mercator constants ---
EARTH_RADIUS_M = 6371008.8        # mean Earth radius (m)
MAX_MERCATOR_LAT = 85.05112878    # projection diverges beyond this
_MIN_COS_LAT = 1e-6               # floor for the longitude inflation divisor


def clamp_lat(lat: float) -> float:
    return clamp(lat, -MAX_MERCATOR_LAT, MAX_MERCATOR_LAT)


# -------------------------
# Slippy-map tile indices
# -------------------------
def to_tile_index(lat: float, lon: float, zoom: int) -> TileCoord:
    """
    Convert lat/lon (deg) to the XYZ tile containing it at `zoom`.

    Latitude is clamped to the Web Mercator limit first; x and y are clamped into
    [0, 2^zoom - 1] so the poles and the antimeridian never produce an index one
    past the edge. Longitude is not wrapped: anything east of 180 lands on the
    last column, anything west of -180 on the first.
    """
    lat_rad = math.radians(clamp_lat(lat))
    n = 2 ** int(zoom)
    fx = (lon + 180.0) / 360.0
    fy = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0
    # exact rational scaling: float(n) overflows past zoom 1023
    x = math.floor(Fraction(fx) * n)
    y = math.floor(Fraction(fy) * n)
    max_index = n - 1
    return TileCoord(
        z=int(zoom),
        x=min(max(x, 0), max_index),
        y=min(max(y, 0), max_index),
    )


def bounding_box_from_radius(center: GeoPoint, radius_m: float) -> BoundingBoxDeg:
    """
    Degree-space box around `center` covering a circle of `radius_m` on a sphere.

    NOTE: this is a square in lat/lon, not a geodesic circle. It over-covers at
    mid latitudes and gets loose near the poles; callers must not rely on exact
    circular coverage.
    """
    angular = float(radius_m) / EARTH_RADIUS_M
    lat_delta = angular * 180.0 / math.pi
    lon_delta = lat_delta / max(math.cos(math.radians(center.lat)), _MIN_COS_LAT)
    return BoundingBoxDeg(
        min_lat=center.lat - lat_delta,
        max_lat=center.lat + lat_delta,
        min_lon=center.lon - lon_delta,
        max_lon=center.lon + lon_delta,
    )


# -------------------------
# Great-circle
# -------------------------
def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine great-circle distance on the mean-radius sphere."""
    p1 = math.radians(lat1)
    p2 = math.radians(lat2)
    dphi = p2 - p1
    dl = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2.0) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2.0) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))
