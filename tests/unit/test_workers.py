"""Tests for the bounded response queue and its workers."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from approvalhub.services.workers import ResponseQueue, ResponseWorker


class TestResponseQueue:
    """Tests for the bounded response queue."""

    @pytest.mark.asyncio
    async def test_offer_until_full(self) -> None:
        """Test that offer returns False once the queue is full."""
        queue = ResponseQueue(maxsize=2)

        assert queue.offer({"n": 1})
        assert queue.offer({"n": 2})
        assert not queue.offer({"n": 3})
        assert queue.qsize() == 2
        assert queue.maxsize == 2

    @pytest.mark.asyncio
    async def test_fifo(self) -> None:
        """Test that payloads are taken in arrival order."""
        queue = ResponseQueue(maxsize=3)
        queue.offer("a")
        queue.offer("b")

        assert await queue.get() == "a"
        assert await queue.get() == "b"


class TestResponseWorker:
    """Tests for the response workers."""

    @pytest.mark.asyncio
    async def test_drains_queue_into_processor(self) -> None:
        """Test that workers hand every payload to the processor."""
        queue = ResponseQueue(maxsize=10)
        processor = AsyncMock()
        worker = ResponseWorker(queue, processor, concurrency=2)
        for n in range(5):
            queue.offer({"n": n})

        worker.start()
        assert worker.running
        await asyncio.wait_for(queue.join(), timeout=1)
        await worker.stop()

        assert processor.handle.await_count == 5
        assert not worker.running

    @pytest.mark.asyncio
    async def test_keeps_running_after_processor_error(self) -> None:
        """Test that a processor error does not stop the worker."""
        queue = ResponseQueue(maxsize=10)
        processor = AsyncMock()
        processor.handle.side_effect = [RuntimeError("boom"), None]
        worker = ResponseWorker(queue, processor)
        queue.offer("first")
        queue.offer("second")

        worker.start()
        await asyncio.wait_for(queue.join(), timeout=1)
        await worker.stop()

        assert processor.handle.await_count == 2

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        """Test that starting twice spawns no extra tasks."""
        worker = ResponseWorker(ResponseQueue(), AsyncMock(), concurrency=3)

        worker.start()
        tasks = list(worker._tasks)
        worker.start()

        assert worker._tasks == tasks
        await worker.stop()
