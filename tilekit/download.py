from __future__ import annotations

"""
Download map tiles around a center coordinate and radius into {output}/{z}/{x}/{y}.{ext}.

Examples:
  python -m tilekit.download --lat 37.7749 --lon -122.4194 --radius 5000 --zoom 12 --zoom 13
  python -m tilekit.download --lat 37.7749 --lon -122.4194 --zoom 10-14 --workers 2
  python -m tilekit.download --lat 51.5 --lon -0.12 --zoom 15 \
      --source "https://{s}.tile.example.org/{z}/{x}/{y}.{ext}" --subdomains a,b,c

Every option also reads an environment variable (DOWNLOAD_LAT, DOWNLOAD_LON,
DOWNLOAD_RADIUS_METERS, DOWNLOAD_ZOOM_LEVELS, ...) and the `download:` section of
the YAML config file. CLI wins over env, env over file.

Exit status: 0 all tiles ok, 1 any tile failed or run cancelled, 2 bad configuration.
"""

import argparse
import os
import threading
import time
from typing import Dict, List, Mapping, Optional

import requests

from common.config import ConfigurationError, load_config_file, section
from common.geo import bounding_box_from_radius, haversine_m
from common.logging_setup import get_logger, setup_logging
from common.types import FetchResult, FetchSummary
from common.utils import elapsed_ms, iso_now_ms
from tilekit.enumerate import count_tiles, enumerate_tiles, tile_range
from tilekit.fetch import TileFetcher
from tilekit.settings import DownloadSettings
from tilekit.store import ALLOWED_EXTENSIONS
from tilekit.throttle import HostThrottle


log = get_logger("tilekit.download")

PROGRESS_EVERY = 100
MAX_LOGGED_FAILURES = 20


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Download XYZ tiles around a point")
    ap.add_argument("--lat", help="Center latitude (deg)")
    ap.add_argument("--lon", help="Center longitude (deg)")
    ap.add_argument("--radius", help="Radius around the center in meters (default 5000)")
    ap.add_argument("--zoom", action="append", help="Zoom level(s): 12, 12,13 or 12-14; repeatable")
    ap.add_argument("--source", help="Tile URL template with {z}/{x}/{y} and optional {s}/{ext}")
    ap.add_argument("--output", help="Output directory (default ./tiles)")
    ap.add_argument("--ext", help="Tile file extension (default png)")
    ap.add_argument("--subdomains", help="Comma-separated subdomains substituted for {s}")
    ap.add_argument("--workers", help="Concurrent requests (default 4; 1 = sequential)")
    ap.add_argument("--timeout", help="Per-request timeout in seconds (default 10)")
    ap.add_argument("--min-interval", dest="min_interval", help="Min seconds between requests to one host")
    ap.add_argument("--failure-cooldown", dest="failure_cooldown", help="Extra seconds a host rests after a failure")
    ap.add_argument("--retries", help="Transport-level retries on 429/5xx (default 0)")
    ap.add_argument("--user-agent", dest="user_agent", help="User-Agent header sent to the tile source")
    ap.add_argument("--skip-existing", dest="skip_existing", action="store_true", default=None,
                    help="Keep tiles already on disk instead of re-downloading them")
    ap.add_argument("--config", default=None, help="YAML config file (default $TILEKIT_CONFIG or config/params.yaml)")
    ap.add_argument("--log-level", dest="log_level", default=None, help="DEBUG/INFO/WARNING/ERROR")
    ap.add_argument("--dry-run", dest="dry_run", action="store_true", help="Only report what would be fetched")
    return ap


def _log_plan(settings: DownloadSettings) -> Dict[int, int]:
    job = settings.job
    bbox = bounding_box_from_radius(settings.center, settings.radius_m)
    log.info(
        "Starting download",
        extra={"extra": {
            "center": {"lat": settings.center.lat, "lon": settings.center.lon},
            "radius_m": settings.radius_m,
            "zoom_levels": list(job.zoom_levels),
            "source": job.source_template,
            "output_dir": str(job.output_root),
            "ext": job.extension,
            "subdomains": list(job.subdomains),
            "workers": settings.workers,
            "bbox": [bbox.min_lon, bbox.min_lat, bbox.max_lon, bbox.max_lat],
            "bbox_diag_m": round(haversine_m(bbox.min_lat, bbox.min_lon, bbox.max_lat, bbox.max_lon), 1),
        }},
    )
    if job.extension not in ALLOWED_EXTENSIONS:
        log.warning("Tiles with extension .%s will not be served by the tile server", job.extension)
    per_zoom = {}
    for z in job.zoom_levels:
        min_x, max_x, min_y, max_y = tile_range(bbox, z)
        per_zoom[z] = (max_x - min_x + 1) * (max_y - min_y + 1)
        log.info("Zoom %d: %d tiles (x %d..%d, y %d..%d)", z, per_zoom[z], min_x, max_x, min_y, max_y)
    return per_zoom


def run(
    settings: DownloadSettings,
    *,
    session: Optional[requests.Session] = None,
    throttle: Optional[HostThrottle] = None,
    cancel: Optional[threading.Event] = None,
) -> FetchSummary:
    """Enumerate the batch and fetch it. Per-tile failures are counted, never raised."""
    bbox = bounding_box_from_radius(settings.center, settings.radius_m)
    total = count_tiles(bbox, settings.job.zoom_levels)
    done = {"n": 0}

    def _progress(result: FetchResult) -> None:
        done["n"] += 1
        if done["n"] % PROGRESS_EVERY == 0 or done["n"] == total:
            log.info("Progress %d/%d (last %s)", done["n"], total, result.coord)

    fetcher = TileFetcher(
        settings.job,
        session=session,
        throttle=throttle or HostThrottle(settings.min_interval, settings.failure_cooldown),
        workers=settings.workers,
        timeout=settings.timeout,
        retries=settings.retries,
        user_agent=settings.user_agent,
        skip_existing=settings.skip_existing,
        cancel=cancel,
        on_result=_progress,
    )
    try:
        return fetcher.run(enumerate_tiles(bbox, settings.job.zoom_levels))
    finally:
        fetcher.close()


def main(argv: Optional[List[str]] = None, env: Optional[Mapping[str, str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    env = os.environ if env is None else env

    try:
        file_cfg = section(load_config_file(args.config), "download")
        settings = DownloadSettings.resolve(vars(args), env, file_cfg)
    except ConfigurationError as e:
        log.error("%s", e)
        return 2

    per_zoom = _log_plan(settings)
    if args.dry_run:
        log.info("Dry run: %d tiles would be fetched", sum(per_zoom.values()))
        return 0

    started = iso_now_ms()
    t0 = time.perf_counter()
    try:
        summary = run(settings)
    except KeyboardInterrupt:
        log.warning("Interrupted; tiles already written are complete")
        return 130

    log.info(
        "Completed",
        extra={"extra": {
            "started": started,
            "elapsed_ms": elapsed_ms(t0),
            "success": summary.success_count,
            "skipped": summary.skipped_count,
            "failed": summary.failure_count,
            "cancelled": summary.cancelled,
            "failures": [r.to_dict() for r in summary.failures[:MAX_LOGGED_FAILURES]],
        }},
    )
    return 0 if summary.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
