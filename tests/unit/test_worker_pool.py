"""
Bounded Worker Pool Unit Tests

레벨 단위 병렬 실행 풀의 단위 테스트입니다.
"""

import pytest
import asyncio

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from goal_planner.task_graph.worker_pool import BoundedWorkerPool


class TestBoundedWorkerPool:
    """BoundedWorkerPool 테스트"""

    def test_invalid_size(self):
        """0 이하 크기는 에러"""
        with pytest.raises(ValueError):
            BoundedWorkerPool(0)

    @pytest.mark.asyncio
    async def test_results_in_item_order(self):
        """결과는 입력 순서대로 반환"""
        pool = BoundedWorkerPool(3)

        async def worker(n):
            await asyncio.sleep(0.01 * (5 - n))
            return n * 10

        assert await pool.run([1, 2, 3, 4], worker) == [10, 20, 30, 40]

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        """동시 실행 수 제한"""
        pool = BoundedWorkerPool(3)
        state = {"current": 0, "max": 0}

        async def worker(n):
            state["current"] += 1
            state["max"] = max(state["max"], state["current"])
            await asyncio.sleep(0.02)
            state["current"] -= 1
            return n

        await pool.run(list(range(10)), worker)

        assert state["max"] == 3
        assert pool.dispatched == 10

    @pytest.mark.asyncio
    async def test_runs_concurrently(self):
        """실제로 병렬 실행"""
        pool = BoundedWorkerPool(5)
        loop = asyncio.get_running_loop()
        start = loop.time()

        async def worker(n):
            await asyncio.sleep(0.1)

        await pool.run(list(range(5)), worker)

        assert loop.time() - start < 0.4

    @pytest.mark.asyncio
    async def test_stops_dispatching(self):
        """should_dispatch가 False면 이후 항목 미실행"""
        pool = BoundedWorkerPool(1)
        seen = []

        async def worker(n):
            seen.append(n)
            return n

        results = await pool.run([1, 2, 3, 4], worker, should_dispatch=lambda: len(seen) < 2)

        assert seen == [1, 2]
        assert results == [1, 2, None, None]
        assert pool.dispatched == 2

    @pytest.mark.asyncio
    async def test_cancel_stops_in_flight_workers(self):
        """풀 취소 시 실행 중인 worker도 취소"""
        pool = BoundedWorkerPool(2)
        cancelled = []

        async def worker(n):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(n)
                raise

        run = asyncio.ensure_future(pool.run([1, 2, 3], worker))
        await asyncio.sleep(0.05)
        run.cancel()

        with pytest.raises(asyncio.CancelledError):
            await run

        assert sorted(cancelled) == [1, 2]
        assert pool.dispatched == 2

    @pytest.mark.asyncio
    async def test_worker_error_propagates(self):
        """worker 예외는 전파"""
        pool = BoundedWorkerPool(2)

        async def worker(n):
            if n == 2:
                raise ValueError("bad item")
            await asyncio.sleep(0.05)
            return n

        with pytest.raises(ValueError):
            await pool.run([1, 2, 3], worker)
