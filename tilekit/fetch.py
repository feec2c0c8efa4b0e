from __future__ import annotations

"""
Batch tile fetcher.

Usage:
    job = TileBatchJob(source_template="https://{s}.tile.example.org/{z}/{x}/{y}.{ext}",
                       zoom_levels=(12,), output_root=Path("tiles"), subdomains=("a", "b"))
    fetcher = TileFetcher(job, workers=4)
    summary = fetcher.run(enumerate_tiles(bbox, job.zoom_levels))
    # summary.success_count / failure_count / skipped_count; summary.ok

Each tile is one GET: a non-2xx status, a transport error or a timeout is a
failed tile, logged and counted, and the batch goes on. Hosts are paced by a
shared HostThrottle regardless of the worker count.
"""

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Deque, Iterable, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from common.types import FetchResult, FetchSummary, TileBatchJob, TileCoord
from tilekit import __version__
from tilekit.store import TileStore
from tilekit.throttle import HostThrottle


log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"tilekit/{__version__}"


def render_url(template: str, coord: TileCoord, ext: str, subdomains: Sequence[str] = ()) -> str:
    """
    Fill {z}/{x}/{y}/{ext}/{s} in `template`. The subdomain is picked by
    (x + y) mod len(subdomains) to spread load across provider edge hosts;
    with no subdomains {s} becomes "". Other braces are left alone.
    """
    s = subdomains[(coord.x + coord.y) % len(subdomains)] if subdomains else ""
    return (
        template.replace("{z}", str(coord.z))
        .replace("{x}", str(coord.x))
        .replace("{y}", str(coord.y))
        .replace("{s}", s)
        .replace("{ext}", ext)
    )


def build_session(user_agent: str = DEFAULT_USER_AGENT, retries: int = 0, pool_size: int = 4) -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent})
    max_retries = (
        Retry(total=retries, backoff_factor=0.3, status_forcelist=[429, 500, 502, 503, 504], allowed_methods=["GET"])
        if retries > 0
        else 0
    )
    adapter = HTTPAdapter(max_retries=max_retries, pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class TileFetcher:
    def __init__(
        self,
        job: TileBatchJob,
        *,
        session: Optional[requests.Session] = None,
        throttle: Optional[HostThrottle] = None,
        workers: int = 4,
        timeout: float | Tuple[float, float] = 10.0,
        retries: int = 0,
        user_agent: str = DEFAULT_USER_AGENT,
        skip_existing: bool = False,
        cancel: Optional[threading.Event] = None,
        on_result: Optional[Callable[[FetchResult], None]] = None,
    ):
        """
        Params:
            job: what to fetch and where to put it
            session: optional requests.Session (built with User-Agent/retries if omitted)
            throttle: per-host pacing; defaults to 25 ms spacing / 100 ms failure cooldown
            workers: max concurrent requests (1 = strictly sequential)
            timeout: per-request timeout, seconds or (connect, read)
            skip_existing: keep tiles already on disk instead of re-downloading
            cancel: set it to stop before the next tile; written tiles stay intact
            on_result: called on the caller's thread for every result, in enumeration order
        """
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.job = job
        self.store = TileStore(job.output_root)
        self.workers = int(workers)
        self._owns_session = session is None
        self.session = session or build_session(user_agent, retries=retries, pool_size=self.workers)
        self.throttle = throttle or HostThrottle()
        self.timeout = timeout
        self.skip_existing = skip_existing
        self.cancel = cancel or threading.Event()
        self.on_result = on_result

    # ----------------------------
    # Public API
    # ----------------------------
    def build_url(self, coord: TileCoord) -> str:
        return render_url(self.job.source_template, coord, self.job.extension, self.job.subdomains)

    def fetch(self, coord: TileCoord) -> Optional[FetchResult]:
        """Fetch and store one tile. Returns None if the batch was cancelled first."""
        if self.cancel.is_set():
            return None
        ext = self.job.extension
        if self.skip_existing and self.store.exists(coord, ext):
            return FetchResult(coord=coord, success=True, skipped=True)

        url = self.build_url(coord)
        host = urlsplit(url).netloc
        self.throttle.acquire(host)
        if self.cancel.is_set():
            return None
        try:
            r = self.session.get(url, timeout=self.timeout)
            if not 200 <= r.status_code < 300:
                raise requests.HTTPError(f"HTTP {r.status_code} {r.reason or ''}".rstrip(), response=r)
            self.store.write(coord, ext, r.content)
        except (requests.RequestException, OSError) as e:
            self.throttle.penalize(host)
            log.warning("Failed %s: %s", coord, e, extra={"extra": {"tile": str(coord), "url": url}})
            return FetchResult(coord=coord, success=False, error=str(e))
        log.debug("Fetched %s", coord)
        return FetchResult(coord=coord, success=True)

    def run(self, coords: Iterable[TileCoord]) -> FetchSummary:
        """
        Fetch every coordinate with at most `workers` requests in flight.

        Results are consumed in submission order, so progress reporting follows
        the enumeration order even though requests overlap.
        """
        summary = FetchSummary()
        pending: Deque[Future] = deque()
        window = self.workers * 2
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="tile-fetch") as pool:
            try:
                for coord in coords:
                    if self.cancel.is_set():
                        break
                    pending.append(pool.submit(self.fetch, coord))
                    if len(pending) >= window:
                        self._collect(summary, pending.popleft().result())
                while pending:
                    self._collect(summary, pending.popleft().result())
            except BaseException:
                # Ctrl-C or a failing callback: stop queued tiles, let in-flight ones finish
                self.cancel.set()
                raise
        summary.cancelled = self.cancel.is_set()
        return summary

    def close(self) -> None:
        """Close the HTTP session if this fetcher built it; injected sessions stay open."""
        if self._owns_session:
            self.session.close()

    # ----------------------------
    # Internals
    # ----------------------------
    def _collect(self, summary: FetchSummary, result: Optional[FetchResult]) -> None:
        if result is None:
            return
        summary.add(result)
        if self.on_result is not None:
            self.on_result(result)
