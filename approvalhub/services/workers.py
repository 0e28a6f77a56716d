"""Bounded hand-off between the webhook endpoints and response processing."""

import asyncio
import contextlib
from typing import Any

import structlog

from approvalhub.services.responses import ResponseProcessor

logger = structlog.get_logger(__name__)


class ResponseQueue:
    """Fixed-capacity queue of raw webhook payloads."""

    def __init__(self, maxsize: int = 1000) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)

    def offer(self, payload: Any) -> bool:
        """Enqueue without waiting; False when the queue is full."""
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Response queue full, rejecting payload", size=self._queue.qsize())
            return False
        return True

    async def get(self) -> Any:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize


class ResponseWorker:
    """Drains the queue into the ResponseProcessor with a fixed number of tasks."""

    def __init__(
        self, queue: ResponseQueue, processor: ResponseProcessor, *, concurrency: int = 1
    ) -> None:
        self.queue = queue
        self.processor = processor
        self.concurrency = concurrency
        self._tasks: list[asyncio.Task[None]] = []

    async def _run(self) -> None:
        while True:
            payload = await self.queue.get()
            try:
                await self.processor.handle(payload)
            except Exception as e:
                logger.error("Response worker error", error=str(e), exc_info=True)
            finally:
                self.queue.task_done()

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._run(), name=f"response-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info("Response workers started", concurrency=self.concurrency)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []


__all__ = ["ResponseQueue", "ResponseWorker"]
