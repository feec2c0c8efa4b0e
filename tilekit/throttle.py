from __future__ import annotations

import threading
import time
from typing import Callable, Dict


class HostThrottle:
    """
    Per-host request spacing shared by all fetch workers.

    Two rules, per host:
      - request starts are at least `min_interval` seconds apart;
      - after a failure, nothing starts for `failure_cooldown` seconds.

    `acquire()` reserves the next slot under the lock and sleeps outside it, so
    workers hitting different hosts never wait on each other.

    Usage:
        throttle = HostThrottle(min_interval=0.025, failure_cooldown=0.1)
        throttle.acquire("tile.openstreetmap.org")
        ...request...
        if failed:
            throttle.penalize("tile.openstreetmap.org")
    """

    def __init__(
        self,
        min_interval: float = 0.025,
        failure_cooldown: float = 0.1,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if min_interval < 0 or failure_cooldown < 0:
            raise ValueError("intervals must be >= 0")
        self.min_interval = float(min_interval)
        self.failure_cooldown = float(failure_cooldown)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_at: Dict[str, float] = {}
        self._hold_until: Dict[str, float] = {}

    def acquire(self, host: str) -> float:
        """
        Block until `host` may be hit again; returns the seconds waited.

        A penalty that lands while the caller sleeps on its slot still holds it
        back: after waking the cooldown is checked again and a new slot is
        booked past it.
        """
        waited = 0.0
        with self._lock:
            now = self._clock()
            start = self._book(host, now)
        while True:
            wait = start - now
            if wait > 0:
                self._sleep(wait)
                waited += wait
            with self._lock:
                now = self._clock()
                if self._hold_until.get(host, now) <= now:
                    return waited
                start = self._book(host, now)

    def penalize(self, host: str) -> None:
        with self._lock:
            hold_until = self._clock() + self.failure_cooldown
            self._hold_until[host] = max(self._hold_until.get(host, hold_until), hold_until)
            self._next_at[host] = max(self._next_at.get(host, hold_until), hold_until)

    def _book(self, host: str, now: float) -> float:
        # caller holds the lock
        start = max(now, self._next_at.get(host, now), self._hold_until.get(host, now))
        self._next_at[host] = start + self.min_interval
        return start
