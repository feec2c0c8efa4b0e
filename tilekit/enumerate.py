from __future__ import annotations

from typing import Any, Iterable, Iterator, List, Sequence, Set, Tuple

from common.geo import to_tile_index
from common.types import BoundingBoxDeg, TileCoord


def _parse_zoom_token(token: str) -> List[int]:
    """'12' -> [12]; '12-14' -> [12, 13, 14]; anything malformed -> []."""
    token = token.strip()
    if not token:
        return []
    if "-" in token:
        parts = token.split("-")
        if len(parts) != 2 or not parts[0].strip().isdecimal() or not parts[1].strip().isdecimal():
            return []
        start, end = int(parts[0]), int(parts[1])
        if start > end:
            return []
        return list(range(start, end + 1))
    if not token.isdecimal():
        return []
    return [int(token)]


def parse_zoom_levels(specs: Any) -> List[int]:
    """
    Parse zoom-level specs into an ascending, deduplicated list.

    Accepts an int, a string ("12", "12,13", "12-14", "10,12-13") or any iterable
    of those (e.g. repeated --zoom flags). Malformed entries are dropped; an empty
    result is left for the caller to reject.
    """
    if specs is None:
        return []
    if isinstance(specs, bool):
        return []
    if isinstance(specs, int):
        return [specs] if specs >= 0 else []
    if isinstance(specs, str):
        zooms: Set[int] = set()
        for token in specs.split(","):
            zooms.update(_parse_zoom_token(token))
        return sorted(zooms)
    zooms = set()
    for item in specs:
        zooms.update(parse_zoom_levels(item))
    return sorted(zooms)


def tile_range(bbox: BoundingBoxDeg, zoom: int) -> Tuple[int, int, int, int]:
    """
    (min_x, max_x, min_y, max_y) covering `bbox` at `zoom`.

    y grows southward, so the south-west corner has the larger y; min/max are
    taken independently on each axis instead of trusting corner order.
    """
    sw = to_tile_index(*bbox.south_west, zoom)
    ne = to_tile_index(*bbox.north_east, zoom)
    return (min(sw.x, ne.x), max(sw.x, ne.x), min(sw.y, ne.y), max(sw.y, ne.y))


def enumerate_tiles(bbox: BoundingBoxDeg, zoom_levels: Sequence[int]) -> Iterator[TileCoord]:
    """Every tile of the box, zoom by zoom, ascending x then ascending y."""
    for z in zoom_levels:
        min_x, max_x, min_y, max_y = tile_range(bbox, z)
        for x in range(min_x, max_x + 1):
            for y in range(min_y, max_y + 1):
                yield TileCoord(z=z, x=x, y=y)


def count_tiles(bbox: BoundingBoxDeg, zoom_levels: Iterable[int]) -> int:
    total = 0
    for z in zoom_levels:
        min_x, max_x, min_y, max_y = tile_range(bbox, z)
        total += (max_x - min_x + 1) * (max_y - min_y + 1)
    return total
