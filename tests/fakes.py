"""
Test doubles: an in-memory WebSocket standing in for the server.
"""

import asyncio
import json

from websockets.exceptions import ConnectionClosedOK

_CLOSE = object()


class FakeWebSocket:
    """
    Minimal stand-in for a websockets client connection.

    Frames pushed with feed() are returned by recv() in order; disconnect()
    makes recv() raise ConnectionClosedOK as if the peer closed.
    """

    def __init__(self):
        self.sent = []
        self.pings = 0
        self.close_calls = 0
        self.closed = False
        self._frames: asyncio.Queue = asyncio.Queue()

    def feed(self, frame) -> None:
        self._frames.put_nowait(frame)

    def feed_json(self, payload: dict) -> None:
        self.feed(json.dumps(payload))

    def disconnect(self) -> None:
        self._frames.put_nowait(_CLOSE)

    def sent_json(self) -> list:
        return [json.loads(text) for text in self.sent]

    async def recv(self):
        frame = await self._frames.get()
        if frame is _CLOSE:
            self.closed = True
            raise ConnectionClosedOK(None, None)
        return frame

    async def send(self, text: str) -> None:
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(text)

    async def ping(self):
        self.pings += 1
        waiter = asyncio.get_running_loop().create_future()
        waiter.set_result(0.0)
        return waiter

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True
        self._frames.put_nowait(_CLOSE)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Poll predicate until it is true or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met within timeout")
        await asyncio.sleep(0.01)
