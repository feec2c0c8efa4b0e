from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """
    WGS84 point in degrees.

    Attributes:
        lat: latitude, must lie in [-90, 90] (clamped later for projection).
        lon: longitude, any finite value.
    """
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            raise ValueError("lat/lon must be finite numbers")
        if not (-90.0 <= self.lat <= 90.0):
            raise ValueError("lat out of range [-90, 90]")


@dataclass(frozen=True, slots=True)
class TileCoord:
    """
    One XYZ tile: zoom z, column x (west→east), row y (north→south).

    x and y must lie in [0, 2^z - 1]. No upper bound on z.
    """
    z: int
    x: int
    y: int

    def __post_init__(self) -> None:
        if self.z < 0:
            raise ValueError("z must be >= 0")
        n = 2 ** self.z
        if not (0 <= self.x < n) or not (0 <= self.y < n):
            raise ValueError(f"x/y out of range for zoom {self.z}")

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.z, self.x, self.y)

    def __str__(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"


@dataclass(frozen=True, slots=True)
class BoundingBoxDeg:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @property
    def south_west(self) -> Tuple[float, float]:
        return (self.min_lat, self.min_lon)

    @property
    def north_east(self) -> Tuple[float, float]:
        return (self.max_lat, self.max_lon)


@dataclass(frozen=True, slots=True)
class TileBatchJob:
    """
    Immutable description of a download batch.

    Attributes:
        source_template: URL with {z}/{x}/{y} and optional {s}/{ext} placeholders.
        zoom_levels: ascending, deduplicated zoom levels.
        output_root: content store root; tiles land in {root}/{z}/{x}/{y}.{ext}.
        extension: file extension without the dot.
        subdomains: provider edge hosts substituted for {s}; may be empty.
    """
    source_template: str
    zoom_levels: Tuple[int, ...]
    output_root: Path
    extension: str = "png"
    subdomains: Tuple[str, ...] = ()


@dataclass(slots=True)
class FetchResult:
    coord: TileCoord
    success: bool
    error: Optional[str] = None
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tile": str(self.coord),
            "success": self.success,
            "error": self.error,
            "skipped": self.skipped,
        }


@dataclass(slots=True)
class FetchSummary:
    """Aggregated totals for one batch run."""
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    cancelled: bool = False
    failures: List[FetchResult] = field(default_factory=list)

    def add(self, result: FetchResult) -> None:
        if not result.success:
            self.failure_count += 1
            self.failures.append(result)
        elif result.skipped:
            self.skipped_count += 1
        else:
            self.success_count += 1

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count + self.skipped_count

    @property
    def ok(self) -> bool:
        return self.failure_count == 0 and not self.cancelled
