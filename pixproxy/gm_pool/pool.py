"""
Pool for managing concurrent GraphicsMagick operations.

A fixed-size admission gate: waiting for a permit suspends the coroutine, it
never blocks the event loop thread.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import os
import threading
import time
from typing import Awaitable, Callable, Optional, TypeVar, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PoolStats(BaseModel):
    """Point-in-time statistics for monitoring pool performance."""
    max_concurrent: int
    current_available: int
    total_processed: int
    total_wait_ms: float
    average_wait_ms: float


async def _hold_until_done(future: "asyncio.Future[T]") -> T:
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        # a worker thread cannot be interrupted; its gm child still counts against the pool
        while not future.done():
            try:
                await asyncio.wait({future})
            except asyncio.CancelledError:
                continue
        if not future.cancelled():
            future.exception()
        raise


class GraphicsMagickPool:
    def __init__(self, size: Optional[int] = None):
        self.size = size if size is not None else (os.cpu_count() or 1)
        if self.size < 1:
            raise ValueError("pool size must be >= 1")
        self._semaphore = asyncio.Semaphore(self.size)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._total_processed = 0
        self._total_wait_seconds = 0.0
        logger.info("Initialized GraphicsMagick pool with size %s", self.size)

    async def run(self, task: Callable[[], Union[T, Awaitable[T]]]) -> T:
        """Execute ``task`` while holding one permit.

        The permit is released on every exit path and the task's result or
        exception propagates unchanged. ``task`` may be a plain callable or
        return an awaitable. If the caller is cancelled while the awaitable is
        still running, the permit is held until it finishes.
        """
        start_wait = time.perf_counter()
        logger.debug("Waiting for GraphicsMagick permit. Available: %s", self.available_permits)
        async with self._semaphore:
            waited = time.perf_counter() - start_wait
            with self._lock:
                self._in_flight += 1
                self._total_processed += 1
                self._total_wait_seconds += waited
            try:
                result = task()
                if inspect.isawaitable(result):
                    result = await _hold_until_done(asyncio.ensure_future(result))
                return result
            except Exception as exc:
                logger.error("Error in GraphicsMagick operation: %s", exc)
                raise
            finally:
                with self._lock:
                    self._in_flight -= 1

    @property
    def available_permits(self) -> int:
        with self._lock:
            return self.size - self._in_flight

    def get_stats(self) -> PoolStats:
        with self._lock:
            processed = self._total_processed
            total_wait_ms = self._total_wait_seconds * 1000.0
            available = self.size - self._in_flight
        average = total_wait_ms / processed if processed else 0.0
        return PoolStats(
            max_concurrent=self.size,
            current_available=available,
            total_processed=processed,
            total_wait_ms=round(total_wait_ms, 3),
            average_wait_ms=round(average, 3),
        )
