from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from common.config import (
    ConfigurationError,
    Option,
    parse_bool,
    parse_csv,
    parse_float,
    parse_non_negative_float,
    parse_non_negative_int,
    parse_port,
    parse_positive_float,
    parse_positive_int,
    resolve_options,
)
from common.types import GeoPoint, TileBatchJob
from tilekit.enumerate import parse_zoom_levels
from tilekit.fetch import DEFAULT_USER_AGENT


DEFAULT_SOURCE = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
DEFAULT_TILE_ROOT = "./tiles"


def _parse_ext(value: Any) -> str:
    ext = str(value).strip().lstrip(".").lower()
    if not ext:
        raise ValueError("extension must not be empty")
    return ext


def _parse_zooms(value: Any) -> Tuple[int, ...]:
    return tuple(parse_zoom_levels(value))


# -------------------------
# Download (CLI > env > file > default)
# -------------------------
DOWNLOAD_OPTIONS: Tuple[Option, ...] = (
    Option("lat", "DOWNLOAD_LAT", None, parse_float),
    Option("lon", "DOWNLOAD_LON", None, parse_float),
    Option("radius", "DOWNLOAD_RADIUS_METERS", 5000.0, parse_non_negative_float),
    Option("zoom", "DOWNLOAD_ZOOM_LEVELS", (12,), _parse_zooms),
    Option("source", "DOWNLOAD_SOURCE_URL_TEMPLATE", DEFAULT_SOURCE, str),
    Option("output", "DOWNLOAD_OUTPUT_DIR", DEFAULT_TILE_ROOT, str),
    Option("ext", "DOWNLOAD_TILE_EXT", "png", _parse_ext),
    Option("subdomains", "DOWNLOAD_SUBDOMAINS", (), parse_csv),
    Option("workers", "DOWNLOAD_WORKERS", 4, parse_positive_int),
    Option("timeout", "DOWNLOAD_TIMEOUT_SECONDS", 10.0, parse_positive_float),
    Option("min_interval", "DOWNLOAD_MIN_INTERVAL_SECONDS", 0.025, parse_non_negative_float),
    Option("failure_cooldown", "DOWNLOAD_FAILURE_COOLDOWN_SECONDS", 0.1, parse_non_negative_float),
    Option("retries", "DOWNLOAD_RETRIES", 0, parse_non_negative_int),
    Option("user_agent", "DOWNLOAD_USER_AGENT", DEFAULT_USER_AGENT, str),
    Option("skip_existing", "DOWNLOAD_SKIP_EXISTING", False, parse_bool),
)


@dataclass(frozen=True)
class DownloadSettings:
    center: GeoPoint
    radius_m: float
    job: TileBatchJob
    workers: int = 4
    timeout: float = 10.0
    min_interval: float = 0.025
    failure_cooldown: float = 0.1
    retries: int = 0
    user_agent: str = DEFAULT_USER_AGENT
    skip_existing: bool = False

    @classmethod
    def resolve(
        cls,
        cli: Optional[Mapping[str, Any]] = None,
        env: Optional[Mapping[str, str]] = None,
        file_cfg: Optional[Mapping[str, Any]] = None,
    ) -> "DownloadSettings":
        """Merge the layers and validate. Raises ConfigurationError before any work starts."""
        v = resolve_options(DOWNLOAD_OPTIONS, cli, env, file_cfg)

        if v["lat"] is None or v["lon"] is None:
            raise ConfigurationError(
                "Provide center coordinates via --lat and --lon (or DOWNLOAD_LAT / DOWNLOAD_LON)."
            )
        try:
            center = GeoPoint(lat=v["lat"], lon=v["lon"])
        except ValueError as e:
            raise ConfigurationError(f"invalid center coordinates: {e}") from e

        if not v["zoom"]:
            raise ConfigurationError("No zoom levels provided. Use --zoom 10 --zoom 11 or --zoom 10-12.")

        job = TileBatchJob(
            source_template=v["source"],
            zoom_levels=tuple(v["zoom"]),
            output_root=Path(v["output"]).expanduser().resolve(),
            extension=v["ext"],
            subdomains=tuple(v["subdomains"]),
        )
        if "{s}" in job.source_template and not job.subdomains:
            raise ConfigurationError("Source template uses {s} but no subdomains were given.")

        return cls(
            center=center,
            radius_m=v["radius"],
            job=job,
            workers=v["workers"],
            timeout=v["timeout"],
            min_interval=v["min_interval"],
            failure_cooldown=v["failure_cooldown"],
            retries=v["retries"],
            user_agent=v["user_agent"],
            skip_existing=v["skip_existing"],
        )


# -------------------------
# Server (env > file > default)
# -------------------------
SERVER_OPTIONS: Tuple[Option, ...] = (
    Option("root", "TILE_SERVER_ROOT", DEFAULT_TILE_ROOT, str),
    Option("port", "TILE_SERVER_PORT", 8080, parse_port),
    Option("host", "TILE_SERVER_HOST", "0.0.0.0", str),
    Option("tile_url", "TILE_SERVER_URL", "http://127.0.0.1:8080/tiles/{z}/{x}/{y}.png", str),
    Option("attribution", "TILE_SERVER_ATTRIBUTION", "Local tile server", str),
    Option("min_zoom", "TILE_SERVER_MIN_ZOOM", 0, parse_non_negative_int),
    Option("max_zoom", "TILE_SERVER_MAX_ZOOM", 19, parse_non_negative_int),
    Option("map_lat", "MAP_LAT", 37.7749, parse_float),
    Option("map_lng", "MAP_LNG", -122.4194, parse_float),
    Option("map_zoom", "MAP_ZOOM", 12, parse_non_negative_int),
)


@dataclass(frozen=True)
class ServerSettings:
    root: Path = Path(DEFAULT_TILE_ROOT)
    host: str = "0.0.0.0"
    port: int = 8080
    client: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def resolve(
        cls,
        env: Optional[Mapping[str, str]] = None,
        file_cfg: Optional[Mapping[str, Any]] = None,
    ) -> "ServerSettings":
        v = resolve_options(SERVER_OPTIONS, None, env, file_cfg)
        if v["min_zoom"] > v["max_zoom"]:
            raise ConfigurationError("TILE_SERVER_MIN_ZOOM must not exceed TILE_SERVER_MAX_ZOOM")
        client = {
            "tileServer": {
                "urlTemplate": v["tile_url"].strip(),
                "attribution": v["attribution"],
                "minZoom": v["min_zoom"],
                "maxZoom": v["max_zoom"],
            },
            "initialView": {
                "lat": v["map_lat"],
                "lng": v["map_lng"],
                "zoom": v["map_zoom"],
            },
        }
        return cls(
            root=Path(v["root"]).expanduser().resolve(),
            host=v["host"],
            port=v["port"],
            client=client,
        )

    def client_config_js(self) -> str:
        return f"window.appConfig = {json.dumps(self.client)};"
