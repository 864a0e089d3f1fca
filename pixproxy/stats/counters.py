from __future__ import annotations

import threading

from pydantic import BaseModel


class CounterSnapshot(BaseModel):
    requests: int
    cache_hits: int
    canvas_requests: int
    cache_hit_rate: float


class Counters:
    """Process-wide request counters, safe to bump from any thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests = 0
        self._cache_hits = 0
        self._canvas_requests = 0

    def record_request(self) -> None:
        with self._lock:
            self._requests += 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self._cache_hits += 1

    def record_canvas_request(self) -> None:
        with self._lock:
            self._canvas_requests += 1

    def cache_hit_rate(self) -> float:
        with self._lock:
            return self._cache_hits / self._requests if self._requests else 0.0

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            requests, hits, canvas = self._requests, self._cache_hits, self._canvas_requests
        return CounterSnapshot(
            requests=requests,
            cache_hits=hits,
            canvas_requests=canvas,
            cache_hit_rate=round(hits / requests, 4) if requests else 0.0,
        )

    def reset(self) -> None:
        with self._lock:
            self._requests = 0
            self._cache_hits = 0
            self._canvas_requests = 0
