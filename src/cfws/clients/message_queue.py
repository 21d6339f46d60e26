"""
AsyncMessageQueue - Bounded, closable hand-off queue between the connection
loop and its callers.

Two of these sit on either side of the connection loop: one carries
serialized requests from callers to the socket, the other carries decoded
messages from the socket to callers. Both are bounded, so a slow side slows
the other down instead of dropping data. Closing the queue is how the end
of the connection is signalled: blocked getters receive None and blocked
putters give up.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


class AsyncMessageQueue:
    """
    Bounded asynchronous queue with an end-of-stream signal.

    Items put before close() remain readable until the queue is drained;
    after that get() returns None immediately. put() on a closed queue
    returns False without enqueueing.

    Attributes:
        name: Label used in log messages.
        max_size: Maximum number of items the queue can hold.
    """

    def __init__(self, max_size: int = 1000, name: str = "queue"):
        """
        Initialize the queue.

        Args:
            max_size: Maximum queue size, at least 1. When full, put() waits.
            name: Label used in log messages.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")

        self.name = name
        self.max_size = max_size
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self._closed = asyncio.Event()
        self._total_messages = 0
        self._rejected_messages = 0

        logger.debug(f"AsyncMessageQueue '{name}' initialized with max_size={max_size}")

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def _until_closed(self, operation: Awaitable) -> Optional[asyncio.Future]:
        """
        Wait for ``operation`` or for the queue to close, whichever is first.

        Returns the finished operation future, or None if the queue closed
        before the operation completed (the operation is then cancelled).
        """
        op = asyncio.ensure_future(operation)
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait({op, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closer.cancel()
            if not op.done():
                op.cancel()

        return op if op in done else None

    async def put(self, message: Any, timeout: Optional[float] = None) -> bool:
        """
        Add a message, waiting while the queue is full.

        Args:
            message: The item to enqueue.
            timeout: Optional timeout in seconds.

        Returns:
            True if the message was enqueued, False if the queue is closed.

        Raises:
            asyncio.TimeoutError: If timeout is specified and exceeded.
        """
        if self.closed:
            self._rejected_messages += 1
            return False

        if not self._queue.full():
            self._queue.put_nowait(message)
        else:
            put = self._until_closed(self._queue.put(message))
            if timeout is not None:
                finished = await asyncio.wait_for(put, timeout=timeout)
            else:
                finished = await put

            if finished is None:
                self._rejected_messages += 1
                logger.debug(f"Queue '{self.name}' closed while waiting to enqueue")
                return False

        self._total_messages += 1

        current_size = self._queue.qsize()
        if current_size > self.max_size * 0.8:
            logger.warning(
                f"Queue '{self.name}' is {current_size / self.max_size * 100:.1f}% full "
                f"({current_size}/{self.max_size}). Consumer may be slow."
            )

        return True

    def put_nowait(self, message: Any) -> None:
        """
        Add a message without waiting.

        Raises:
            asyncio.QueueFull: If the queue is full or closed.
        """
        if self.closed:
            raise asyncio.QueueFull(f"Queue '{self.name}' is closed")
        self._queue.put_nowait(message)
        self._total_messages += 1

    async def get(self, timeout: Optional[float] = None) -> Any:
        """
        Retrieve the next message.

        Args:
            timeout: Optional timeout in seconds.

        Returns:
            The next message, or None once the queue is closed and drained.

        Raises:
            asyncio.TimeoutError: If timeout is specified and exceeded.
        """
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self.closed:
            return None

        get = self._until_closed(self._queue.get())
        if timeout is not None:
            finished = await asyncio.wait_for(get, timeout=timeout)
        else:
            finished = await get

        return finished.result() if finished is not None else None

    def get_nowait(self) -> Any:
        """
        Retrieve a message without waiting.

        Raises:
            asyncio.QueueEmpty: If the queue is empty.
        """
        return self._queue.get_nowait()

    def close(self) -> None:
        """
        Signal end-of-stream.

        Idempotent. Wakes every blocked get() and put().
        """
        if not self.closed:
            self._closed.set()
            logger.debug(f"Queue '{self.name}' closed with {self._queue.qsize()} pending")

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    def full(self) -> bool:
        return self._queue.full()

    def clear(self) -> int:
        """
        Remove all pending messages.

        Returns:
            Number of messages that were removed.
        """
        cleared = 0
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
                cleared += 1
            except asyncio.QueueEmpty:
                break

        if cleared > 0:
            logger.debug(f"Cleared {cleared} messages from queue '{self.name}'")

        return cleared

    def get_stats(self) -> dict:
        """
        Get queue statistics for monitoring and debugging.

        Returns:
            Dict containing:
                - current_size: Number of messages currently in queue
                - max_size: Maximum queue capacity
                - total_messages: Total messages ever enqueued
                - rejected_messages: Messages refused because the queue closed
                - closed: Whether end-of-stream has been signalled
        """
        return {
            "current_size": self._queue.qsize(),
            "max_size": self.max_size,
            "total_messages": self._total_messages,
            "rejected_messages": self._rejected_messages,
            "closed": self.closed,
        }

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"AsyncMessageQueue({self.name}, size={stats['current_size']}/{stats['max_size']}, "
            f"total={stats['total_messages']}, closed={stats['closed']})"
        )
