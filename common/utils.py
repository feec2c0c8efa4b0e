from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Iterable, List, TypeVar


T = TypeVar("T")


def iso_now_ms() -> str:
    """UTC ISO-8601 timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def clamp(v: float, lo: float, hi: float) -> float:
    return float(min(hi, max(lo, v)))


def unique(items: Iterable[T]) -> List[T]:
    """Drop repeats, keeping first-seen order."""
    seen = set()
    out: List[T] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def elapsed_ms(t0: float) -> float:
    """Milliseconds since a `time.perf_counter()` reading."""
    return round((time.perf_counter() - t0) * 1e3, 2)
