"""
Test suite for AsyncMessageQueue.

Tests FIFO hand-off, backpressure, end-of-stream on close, and statistics.
"""

import asyncio

import pytest

from cfws.clients.message_queue import AsyncMessageQueue


class TestAsyncMessageQueue:
    """Test suite for AsyncMessageQueue."""

    @pytest.mark.asyncio
    async def test_initialization(self):
        queue = AsyncMessageQueue()
        assert queue.max_size == 1000
        assert queue.qsize() == 0
        assert queue.empty()
        assert not queue.full()
        assert not queue.closed

        queue = AsyncMessageQueue(max_size=1, name="challenge")
        assert queue.max_size == 1
        assert queue.name == "challenge"

    def test_rejects_unbounded_size(self):
        """A size of zero would make the queue unbounded."""
        with pytest.raises(ValueError):
            AsyncMessageQueue(max_size=0)

    @pytest.mark.asyncio
    async def test_put_get_fifo(self):
        queue = AsyncMessageQueue(max_size=10)
        messages = [{"id": 1}, {"id": 2}, {"id": 3}]

        for msg in messages:
            assert await queue.put(msg) is True

        for expected in messages:
            assert await queue.get() == expected

        assert queue.empty()

    @pytest.mark.asyncio
    async def test_put_nowait_full_queue(self):
        queue = AsyncMessageQueue(max_size=1)
        queue.put_nowait({"id": 1})

        assert queue.full()
        with pytest.raises(asyncio.QueueFull):
            queue.put_nowait({"id": 2})

    @pytest.mark.asyncio
    async def test_get_nowait_empty_queue(self):
        queue = AsyncMessageQueue(max_size=10)
        with pytest.raises(asyncio.QueueEmpty):
            queue.get_nowait()

    @pytest.mark.asyncio
    async def test_put_blocks_when_full(self):
        """A full queue suspends the producer until the consumer reads."""
        queue = AsyncMessageQueue(max_size=1)
        await queue.put("first")

        producer = asyncio.create_task(queue.put("second"))
        await asyncio.sleep(0.05)
        assert not producer.done()

        assert await queue.get() == "first"
        assert await asyncio.wait_for(producer, timeout=1.0) is True
        assert await queue.get() == "second"

    @pytest.mark.asyncio
    async def test_put_with_timeout(self):
        queue = AsyncMessageQueue(max_size=1)
        await queue.put({"id": 1})

        with pytest.raises(asyncio.TimeoutError):
            await queue.put({"id": 2}, timeout=0.05)

        assert queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_get_with_timeout(self):
        queue = AsyncMessageQueue(max_size=10)
        with pytest.raises(asyncio.TimeoutError):
            await queue.get(timeout=0.05)

    @pytest.mark.asyncio
    async def test_zero_timeout_does_not_wait(self):
        queue = AsyncMessageQueue(max_size=1)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(queue.get(timeout=0), timeout=1.0)

        await queue.put({"id": 1})
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(queue.put({"id": 2}, timeout=0), timeout=1.0)

        assert queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_close_wakes_blocked_getter(self):
        queue = AsyncMessageQueue(max_size=10)
        consumer = asyncio.create_task(queue.get())
        await asyncio.sleep(0.01)

        queue.close()

        assert await asyncio.wait_for(consumer, timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_close_wakes_blocked_putter(self):
        queue = AsyncMessageQueue(max_size=1)
        await queue.put("first")
        producer = asyncio.create_task(queue.put("second"))
        await asyncio.sleep(0.01)

        queue.close()

        assert await asyncio.wait_for(producer, timeout=1.0) is False
        assert queue.get_stats()["rejected_messages"] == 1

    @pytest.mark.asyncio
    async def test_pending_items_survive_close(self):
        """Items queued before close are still delivered, then None."""
        queue = AsyncMessageQueue(max_size=10)
        await queue.put("a")
        await queue.put("b")

        queue.close()

        assert await queue.get() == "a"
        assert await queue.get() == "b"
        assert await queue.get() is None
        assert await queue.get() is None

    @pytest.mark.asyncio
    async def test_put_after_close(self):
        queue = AsyncMessageQueue(max_size=10)
        queue.close()
        queue.close()

        assert await queue.put("late") is False
        with pytest.raises(asyncio.QueueFull):
            queue.put_nowait("late")
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_clear(self):
        queue = AsyncMessageQueue(max_size=10)
        for i in range(5):
            await queue.put(i)

        assert queue.clear() == 5
        assert queue.empty()
        assert queue.clear() == 0

    @pytest.mark.asyncio
    async def test_stats(self):
        queue = AsyncMessageQueue(max_size=4, name="inbound")
        await queue.put(1)
        await queue.put(2)
        await queue.get()

        stats = queue.get_stats()
        assert stats["current_size"] == 1
        assert stats["max_size"] == 4
        assert stats["total_messages"] == 2
        assert stats["closed"] is False
        assert "inbound" in repr(queue)
