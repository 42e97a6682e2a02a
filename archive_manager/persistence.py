"""
Persistence Queue: strictly ordered execution of storage tasks.

Every storage read or write issued by the archive manager is submitted here.
Tasks run one at a time, in submission order, on a single worker so the
storage backend never sees two operations in flight.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger("archive_manager")

T = TypeVar("T")

TaskFactory = Callable[[], Awaitable[Any]]


class PersistenceQueue:
    """FIFO task queue drained by a fixed number of worker tasks.

    Workers start lazily on the first :meth:`add` so the queue can be
    constructed outside a running event loop.
    """

    def __init__(self, concurrency: int = 1, maxsize: int = 0):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._workers: list[asyncio.Task] = []

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def pending(self) -> int:
        """Number of tasks waiting to start."""
        return self._queue.qsize()

    def _ensure_workers(self) -> None:
        self._workers = [w for w in self._workers if not w.done()]
        while len(self._workers) < self._concurrency:
            self._workers.append(asyncio.create_task(self._worker()))

    async def add(self, task: Callable[[], Awaitable[T]]) -> T:
        """Enqueue a task and wait for its result.

        Args:
            task: Zero-argument callable returning an awaitable. It is called
                only when the task reaches the front of the queue.

        Returns:
            The task's result.

        Raises:
            asyncio.QueueFull: If the queue is bounded and full.
            Exception: Whatever the task raised.
        """
        self._ensure_workers()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((task, future))
        return await future

    async def _worker(self) -> None:
        while True:
            task, future = await self._queue.get()
            try:
                if future.done():
                    continue
                try:
                    result = await task()
                except Exception as err:
                    if not future.done():
                        future.set_exception(err)
                except asyncio.CancelledError:
                    if not future.done():
                        future.cancel()
                    # only stop when the worker itself is being cancelled
                    if asyncio.current_task().cancelling():
                        raise
                except BaseException as err:
                    if not future.done():
                        future.set_exception(err)
                    raise
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued task has finished."""
        await self._queue.join()

    async def close(self, timeout: Optional[float] = None) -> None:
        """Drain the queue, then stop the workers."""
        if self._workers:
            await asyncio.wait_for(self._queue.join(), timeout)
        for worker in self._workers:
            worker.cancel()
        for worker in self._workers:
            try:
                await worker
            except asyncio.CancelledError:
                pass
        self._workers = []
        logger.debug("Persistence queue closed")
