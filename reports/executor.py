"""
reports/executor.py

Detached execution of report jobs on the running event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ReportTaskExecutor(Protocol):
    def submit(self, task: Callable[..., Awaitable[Any]], *args: Any) -> None:
        ...


class BoundedTaskExecutor:
    """
    Runs submitted coroutine functions as detached asyncio tasks.

    At most ``max_concurrency`` tasks execute at once; the rest wait on a
    semaphore. Strong references to in-flight tasks are held until they
    finish so the event loop cannot garbage-collect them mid-run.
    ``submit`` must be called from inside the running loop.
    """

    def __init__(self, max_concurrency: int = 4) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, task: Callable[..., Awaitable[Any]], *args: Any) -> None:
        if self._closed:
            raise RuntimeError("Executor is shut down; no new tasks are accepted.")
        handle = asyncio.get_running_loop().create_task(self._run(task, *args))
        self._tasks.add(handle)
        handle.add_done_callback(self._tasks.discard)

    async def _run(self, task: Callable[..., Awaitable[Any]], *args: Any) -> None:
        async with self._semaphore:
            try:
                await task(*args)
            except Exception:
                # tasks record their own failures
                logger.exception("Detached task %s crashed", getattr(task, "__name__", task))

    async def shutdown(self, timeout: float = 30.0) -> None:
        """
        Stop accepting work and wait up to *timeout* seconds for in-flight tasks.

        Tasks still running after the timeout are cancelled.
        """
        self._closed = True
        pending = set(self._tasks)
        if not pending:
            return

        logger.info("Waiting for %d report task(s) to finish", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for handle in still_running:
            handle.cancel()
        if still_running:
            logger.warning("Cancelled %d report task(s) at shutdown", len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)
