"""Bounded worker pool for batch processing."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import anyio

from rawkit.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskResult(Generic[T]):
    """Result of a pooled task."""

    index: int
    item: T
    success: bool
    result: Any | None = None
    error: str | None = None
    error_type: str | None = None


class WorkerPool:
    """Drains a queue of items with at most ``max_workers`` running at once.

    Each worker takes one item, awaits ``func(item)`` to completion and only
    then takes the next, so no more than ``max_workers`` calls are ever in
    flight. An exception from one item is recorded on its TaskResult and
    never stops the other workers.

    Workers run in an anyio task group: when the caller's scope is cancelled,
    each worker is cancelled through the scope, and cleanup a worker runs
    under a shielded scope is allowed to finish before ``map`` returns.
    """

    def __init__(self, max_workers: int) -> None:
        """Initialize the pool.

        Args:
            max_workers: Maximum concurrently running items (>= 1)
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.completed = 0
        self.failed = 0

    async def map(
        self,
        items: list[T],
        func: Callable[[T], Awaitable[R]],
    ) -> list[TaskResult[T]]:
        """Process items through the pool.

        Args:
            items: Items to process
            func: Async function to apply to each item

        Returns:
            TaskResults in completion order
        """
        self.completed = 0
        self.failed = 0

        queue: asyncio.Queue[tuple[int, T]] = asyncio.Queue()
        for index, item in enumerate(items):
            queue.put_nowait((index, item))

        results: list[TaskResult[T]] = []

        async def worker(worker_id: int) -> None:
            while True:
                try:
                    index, item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    value = await func(item)
                    task_result = TaskResult(index=index, item=item, success=True, result=value)
                    self.completed += 1
                except Exception as e:
                    log.warning(
                        "Task failed",
                        item=str(item),
                        worker=worker_id,
                        error=str(e),
                    )
                    task_result = TaskResult(
                        index=index,
                        item=item,
                        success=False,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    self.failed += 1
                finally:
                    queue.task_done()
                results.append(task_result)

        worker_count = min(self.max_workers, len(items))
        async with anyio.create_task_group() as tg:
            for worker_id in range(worker_count):
                tg.start_soon(worker, worker_id)
        return results
