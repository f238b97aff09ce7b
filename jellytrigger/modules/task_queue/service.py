import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from jellytrigger.core.errors import ServiceBusy

logger = logging.getLogger("jellytrigger.task_queue")

TaskFactory = Callable[[], Awaitable[None]]


@dataclass
class _QueuedTask:
    key: str
    factory: TaskFactory


class TaskQueue:
    """Bounded FIFO of background work executed by a fixed number of workers.

    Width 1 serializes every submission, which is how update triggers avoid
    racing on the same working tree.
    """

    def __init__(self, name: str, *, concurrency: int = 1, max_pending: int = 8) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if max_pending < 1:
            raise ValueError("max_pending must be >= 1")
        self.name = name
        self._concurrency = concurrency
        self._max_pending = max_pending
        self._queue: asyncio.Queue[_QueuedTask] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._pending_keys: Counter[str] = Counter()
        self._running_keys: Counter[str] = Counter()

    @property
    def started(self) -> bool:
        return bool(self._workers)

    @property
    def pending_count(self) -> int:
        return sum(self._pending_keys.values())

    @property
    def running_count(self) -> int:
        return sum(self._running_keys.values())

    async def start(self) -> None:
        if self._workers:
            return
        queue: asyncio.Queue[_QueuedTask] = asyncio.Queue()
        self._queue = queue
        self._workers = [
            asyncio.create_task(self._worker(queue), name=f"{self.name}-worker-{index}")
            for index in range(self._concurrency)
        ]
        logger.info(
            "task_queue_started",
            extra={"event_name": "task_queue_started", "service": self.name},
        )

    def submit(self, key: str, factory: TaskFactory, *, coalesce: bool = False) -> bool:
        """Queue ``factory`` under ``key``.

        Returns ``False`` when ``coalesce`` is set and an identical key is
        already waiting to start. Raises ``ServiceBusy`` when the queue is full.
        """
        if self._queue is None:
            raise RuntimeError(f"task queue {self.name!r} is not started")
        if coalesce and key in self._pending_keys:
            return False
        if self.pending_count >= self._max_pending:
            raise ServiceBusy("Too many queued operations", pending=self.pending_count)

        self._pending_keys[key] += 1
        self._queue.put_nowait(_QueuedTask(key=key, factory=factory))
        return True

    async def join(self) -> None:
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, grace_seconds: float = 10.0) -> None:
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self.join(), timeout=grace_seconds)
        except TimeoutError:
            logger.warning(
                "task_queue_grace_expired",
                extra={"event_name": "task_queue_grace_expired", "service": self.name},
            )

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        self._pending_keys.clear()
        self._running_keys.clear()

    async def _worker(self, queue: asyncio.Queue[_QueuedTask]) -> None:
        while True:
            task = await queue.get()
            self._pending_keys -= Counter([task.key])
            self._running_keys[task.key] += 1
            try:
                await task.factory()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.error(
                    "background_task_failed",
                    extra={"event_name": "background_task_failed", "service": self.name},
                    exc_info=True,
                )
            finally:
                self._running_keys -= Counter([task.key])
                queue.task_done()
