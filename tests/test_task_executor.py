"""
tests/test_task_executor.py

Pytest unit tests for BoundedTaskExecutor.
"""

from __future__ import annotations

import asyncio

import pytest

from reports.executor import BoundedTaskExecutor


class TestBoundedTaskExecutor:
    def test_rejects_non_positive_concurrency(self) -> None:
        with pytest.raises(ValueError):
            BoundedTaskExecutor(max_concurrency=0)

    def test_concurrency_is_bounded(self) -> None:
        running = 0
        peak = 0
        finished: list[int] = []

        async def work(index: int) -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            finished.append(index)

        async def scenario() -> None:
            executor = BoundedTaskExecutor(max_concurrency=2)
            for index in range(6):
                executor.submit(work, index)
            assert executor.in_flight == 6
            await executor.shutdown(timeout=5)
            assert executor.in_flight == 0

        asyncio.run(scenario())
        assert peak == 2
        assert sorted(finished) == list(range(6))

    def test_crashing_task_does_not_propagate(self, caplog: pytest.LogCaptureFixture) -> None:
        async def crash() -> None:
            raise RuntimeError("kaput")

        async def scenario() -> None:
            executor = BoundedTaskExecutor()
            executor.submit(crash)
            await executor.shutdown(timeout=5)

        asyncio.run(scenario())
        assert "crash" in caplog.text

    def test_submit_after_shutdown_raises(self) -> None:
        async def scenario() -> None:
            executor = BoundedTaskExecutor()
            await executor.shutdown()
            with pytest.raises(RuntimeError):
                executor.submit(asyncio.sleep, 0)

        asyncio.run(scenario())

    def test_shutdown_cancels_after_timeout(self) -> None:
        cancelled = False

        async def slow() -> None:
            nonlocal cancelled
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled = True
                raise

        async def scenario() -> None:
            executor = BoundedTaskExecutor()
            executor.submit(slow)
            await asyncio.sleep(0)
            await executor.shutdown(timeout=0.05)

        asyncio.run(scenario())
        assert cancelled is True
