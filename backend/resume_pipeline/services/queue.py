import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)

JobHandler = Callable[[Any], Awaitable[Any]]

_STOP = object()


class ProcessingQueue:
    """
    Background workers fed through an asyncio.Queue.

    The handler records its own outcome; anything it lets escape is logged
    here so a detached job never fails silently. `stop` drains pending jobs
    before the workers exit.
    """

    def __init__(self, workers: int = 2):
        self.workers = max(1, workers)
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self._handler: Optional[JobHandler] = None

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self, handler: JobHandler) -> None:
        if self.running:
            return
        self._handler = handler
        self._queue = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"file-processor-{i}")
            for i in range(self.workers)
        ]
        logger.info(f"Started {self.workers} processing worker(s)")

    async def submit(self, job: Any) -> None:
        if not self.running:
            raise RuntimeError("Processing queue is not running")
        await self._queue.put(job)

    async def join(self) -> None:
        """Wait until every submitted job has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        if not self.running:
            return
        await self._queue.join()
        for _ in self._tasks:
            await self._queue.put(_STOP)
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Processing workers stopped")

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is _STOP:
                    return
                await self._handler(job)
            except Exception:
                logger.exception(f"Worker {index} failed to handle job {job!r}")
            finally:
                self._queue.task_done()
