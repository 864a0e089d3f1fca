import asyncio
import threading
import time

import pytest

from pixproxy.gm_pool.pool import GraphicsMagickPool


def test_concurrency_never_exceeds_pool_size():
    async def run():
        pool = GraphicsMagickPool(size=2)
        active = 0
        peak = 0

        async def task():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return "ok"

        results = await asyncio.gather(*(pool.run(task) for _ in range(10)))
        return pool, peak, results

    pool, peak, results = asyncio.run(run())
    assert peak == 2
    assert results == ["ok"] * 10
    stats = pool.get_stats()
    assert stats.total_processed == 10
    assert stats.max_concurrent == 2
    assert stats.current_available == 2


def test_blocking_tasks_in_threads_are_bounded():
    async def run():
        pool = GraphicsMagickPool(size=3)
        counter = {"active": 0, "peak": 0}
        lock = threading.Lock()

        def blocking():
            with lock:
                counter["active"] += 1
                counter["peak"] = max(counter["peak"], counter["active"])
            time.sleep(0.02)
            with lock:
                counter["active"] -= 1

        await asyncio.gather(*(pool.run(lambda: asyncio.to_thread(blocking)) for _ in range(9)))
        return pool, counter["peak"]

    pool, peak = asyncio.run(run())
    assert peak <= 3
    assert pool.available_permits == 3


def test_permit_released_when_task_fails():
    async def run():
        pool = GraphicsMagickPool(size=1)

        def boom():
            raise RuntimeError("gm exploded")

        with pytest.raises(RuntimeError, match="gm exploded"):
            await pool.run(boom)
        assert pool.available_permits == 1
        assert await pool.run(lambda: 42) == 42
        return pool

    pool = asyncio.run(run())
    assert pool.get_stats().total_processed == 2


def test_waiting_is_recorded():
    async def run():
        pool = GraphicsMagickPool(size=1)

        async def slow():
            await asyncio.sleep(0.05)

        await asyncio.gather(pool.run(slow), pool.run(slow))
        return pool.get_stats()

    stats = asyncio.run(run())
    assert stats.total_wait_ms > 0
    assert stats.average_wait_ms == pytest.approx(stats.total_wait_ms / 2, rel=0.01, abs=0.01)


def test_fresh_pool_stats():
    stats = GraphicsMagickPool(size=4).get_stats()
    assert stats.total_processed == 0
    assert stats.average_wait_ms == 0.0
    assert stats.current_available == 4


def test_invalid_size():
    with pytest.raises(ValueError):
        GraphicsMagickPool(size=0)


def test_cancelled_caller_keeps_permit_until_thread_finishes():
    async def run():
        pool = GraphicsMagickPool(size=1)
        counter = {"active": 0, "peak": 0}
        lock = threading.Lock()

        def blocking(seconds):
            with lock:
                counter["active"] += 1
                counter["peak"] = max(counter["peak"], counter["active"])
            time.sleep(seconds)
            with lock:
                counter["active"] -= 1

        first = asyncio.create_task(pool.run(lambda: asyncio.to_thread(blocking, 0.3)))
        await asyncio.sleep(0.05)
        first.cancel()
        second = asyncio.create_task(pool.run(lambda: asyncio.to_thread(blocking, 0.05)))
        await asyncio.sleep(0.05)
        assert pool.available_permits == 0
        with pytest.raises(asyncio.CancelledError):
            await first
        await second
        return pool, counter["peak"]

    pool, peak = asyncio.run(run())
    assert peak == 1
    assert pool.available_permits == 1
    assert pool.get_stats().total_processed == 2


def test_wait_for_timeout_does_not_overrun_pool():
    async def run():
        pool = GraphicsMagickPool(size=1)
        counter = {"active": 0, "peak": 0}
        lock = threading.Lock()

        def blocking():
            with lock:
                counter["active"] += 1
                counter["peak"] = max(counter["peak"], counter["active"])
            time.sleep(0.2)
            with lock:
                counter["active"] -= 1

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(pool.run(lambda: asyncio.to_thread(blocking)), 0.05)
        await pool.run(lambda: asyncio.to_thread(blocking))
        return counter["peak"]

    assert asyncio.run(run()) == 1
