"""
ConnectionMultiplexer - single-task owner of the WebSocket connection.

One background task owns the socket for the connection's whole lifetime and
multiplexes three event sources onto it:

- outbound requests queued by callers, written to the socket in order
- inbound frames, decoded and handed to callers through a bounded queue
- an idle keepalive timer that sends a ping after ``keepalive_interval``
  seconds without any other event

Callers never touch the socket. They only see two one-directional queues
(send / receive) plus a dedicated single-slot hand-off for challenge answers,
so that waiting for a challenge never competes with ordinary consumers.

There is no reconnection: any transport error ends the loop and both queues
report end-of-stream.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..models.decoder import MessageDecodeError, decode
from ..models.messages import ChallengeMessage, InboundMessage
from .message_queue import AsyncMessageQueue

logger = logging.getLogger(__name__)

DEFAULT_KEEPALIVE_INTERVAL = 59.0


class ConnectionState(Enum):
    """WebSocket connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class UnsupportedFrameError(WebSocketException):
    """Raised inside the loop when the server sends a binary frame."""


class ConnectionMultiplexer:
    """
    Owns one WebSocket connection and its event loop.

    Attributes:
        ws_url: WebSocket endpoint URL
        keepalive_interval: Idle seconds before a ping is sent
        open_timeout: Seconds allowed for the opening handshake
        close_timeout: Seconds allowed for the loop to finish on close()
    """

    def __init__(
        self,
        ws_url: str,
        keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
        outbound_queue_size: int = 16,
        inbound_queue_size: int = 1000,
        open_timeout: Optional[float] = 10.0,
        close_timeout: float = 5.0,
    ):
        """
        Initialize the multiplexer. No I/O happens until start().

        Args:
            ws_url: WebSocket endpoint URL.
            keepalive_interval: Idle seconds before a ping is sent.
            outbound_queue_size: Bound of the caller -> socket queue.
            inbound_queue_size: Bound of the socket -> caller queue.
            open_timeout: Seconds allowed for the opening handshake.
            close_timeout: Seconds close() waits for the loop before cancelling it.
        """
        self.ws_url = ws_url
        self.keepalive_interval = keepalive_interval
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout

        self._ws: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None
        self._state = ConnectionState.DISCONNECTED
        self._stop = asyncio.Event()

        self._outbound = AsyncMessageQueue(max_size=outbound_queue_size, name="outbound")
        self._inbound = AsyncMessageQueue(max_size=inbound_queue_size, name="inbound")
        self._challenges = AsyncMessageQueue(max_size=1, name="challenge")

        # Statistics
        self._frames_received = 0
        self._messages_delivered = 0
        self._frames_dropped = 0
        self._decode_errors = 0
        self._messages_sent = 0
        self._pings_sent = 0
        self._pongs_received = 0

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    async def start(self) -> None:
        """
        Open the connection and spawn the background loop.

        Raises:
            RuntimeError: If the multiplexer was already started.
            OSError, websockets.exceptions.WebSocketException,
            asyncio.TimeoutError: On connection failure.
        """
        if self._state != ConnectionState.DISCONNECTED:
            raise RuntimeError(f"Connection already started (state={self._state.value})")

        self._state = ConnectionState.CONNECTING
        logger.debug(f"Connecting to {self.ws_url}...")

        try:
            # Keepalive is driven by the loop's idle timer, not the library
            self._ws = await websockets.connect(
                self.ws_url,
                ping_interval=None,
                open_timeout=self.open_timeout,
                max_size=None,
            )
        except Exception as e:
            self._state = ConnectionState.CLOSED
            self._close_queues()
            logger.error(f"Connection to {self.ws_url} failed: {e}")
            raise

        self._state = ConnectionState.OPEN
        logger.info(f"Connected to {self.ws_url}")

        self._task = asyncio.create_task(self._run(self._ws))

    async def send(self, text: str) -> bool:
        """
        Queue a serialized request for the socket.

        Suspends while the outbound queue is full. Returning True means the
        loop accepted the item, not that it is already on the wire.

        Returns:
            True if queued, False if the connection is not open.
        """
        if self._state != ConnectionState.OPEN:
            logger.warning(f"Connection is {self._state.value}, not sending: {text}")
            return False
        return await self._outbound.put(text)

    async def receive(self, timeout: Optional[float] = None) -> Optional[InboundMessage]:
        """
        Next decoded message, or None at end-of-stream.

        Raises:
            asyncio.TimeoutError: If timeout is specified and exceeded.
        """
        message = await self._inbound.get(timeout=timeout)
        if message is not None:
            self._messages_delivered += 1
        return message

    async def wait_for_challenge(self) -> Optional[ChallengeMessage]:
        """
        Wait for the server's challenge answer.

        Challenge frames are routed here by the loop and never appear on
        receive(). There is no timeout: if the server never answers while
        the connection stays open, this waits indefinitely.

        Returns:
            The challenge message, or None if the connection ended first.
        """
        return await self._challenges.get()

    async def close(self) -> None:
        """
        Stop the loop, send a close frame and wait for the task to finish.

        Requests already queued by send() are written before the close
        frame. Messages not yet delivered are discarded. Safe to call more
        than once.
        """
        if self._task is None:
            self._state = ConnectionState.CLOSED
            self._close_queues()
            return

        self._stop.set()
        self._inbound.close()
        self._inbound.clear()

        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self.close_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Connection loop did not stop within {self.close_timeout}s, cancelling")
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)

    async def wait_closed(self) -> None:
        """Wait until the loop has exited for any reason."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    async def _run(self, ws) -> None:
        """
        Main event loop: multiplex outbound, inbound and keepalive events.

        The wait timeout restarts on every iteration, so a ping only goes
        out after a full keepalive interval with no activity at all.

        While a decoded message waits for room in the inbound queue, the
        socket is not read, but requests, pings and the stop signal are
        still handled.
        """
        outbound_task: Optional[asyncio.Task] = None
        inbound_task: Optional[asyncio.Task] = None
        delivery_task: Optional[asyncio.Task] = None
        stop_task = asyncio.ensure_future(self._stop.wait())

        try:
            while True:
                if outbound_task is None:
                    outbound_task = asyncio.ensure_future(self._outbound.get())
                if inbound_task is None and delivery_task is None:
                    inbound_task = asyncio.ensure_future(ws.recv())

                waiting = {outbound_task, stop_task}
                waiting.add(inbound_task if delivery_task is None else delivery_task)

                done, _ = await asyncio.wait(
                    waiting,
                    timeout=self.keepalive_interval,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if stop_task in done:
                    logger.debug("Stop requested by owner")
                    await self._flush_outbound(ws, outbound_task)
                    outbound_task = None
                    break

                if not done:
                    await self._send_ping(ws)
                    continue

                if outbound_task in done:
                    text = outbound_task.result()
                    outbound_task = None
                    if text is not None:
                        await ws.send(text)
                        self._messages_sent += 1
                        logger.debug(f"Sent: {text}")

                if delivery_task in done:
                    if not delivery_task.result():
                        self._frames_dropped += 1
                    delivery_task = None

                if inbound_task in done:
                    frame = inbound_task.result()
                    inbound_task = None
                    message = self._route_frame(frame)
                    if message is not None:
                        delivery_task = asyncio.ensure_future(self._inbound.put(message))

        except ConnectionClosed as e:
            logger.info(f"Connection closed by peer: {e}")

        except UnsupportedFrameError as e:
            logger.error(f"Protocol error, closing connection: {e}")

        except (WebSocketException, OSError) as e:
            logger.error(f"Transport error, closing connection: {e}")

        finally:
            for task in (outbound_task, inbound_task, delivery_task, stop_task):
                if task is None:
                    continue
                if not task.done():
                    task.cancel()
                elif not task.cancelled():
                    # retrieve so an unhandled error is not reported twice
                    task.exception()
            await self._shutdown(ws)

    def _route_frame(self, frame) -> Optional[InboundMessage]:
        """
        Decode one inbound frame and route challenge answers to their slot.

        Returns:
            The message to hand to receive() callers, or None if the frame
            was consumed or dropped here.

        Raises:
            UnsupportedFrameError: For binary frames.
        """
        self._frames_received += 1

        if not isinstance(frame, str):
            raise UnsupportedFrameError(f"Binary frame of {len(frame)} bytes is not supported")

        try:
            message = decode(frame)
        except MessageDecodeError as e:
            self._decode_errors += 1
            logger.warning(f"Discarding undecodable frame: {e}")
            return None

        if message is None:
            self._frames_dropped += 1
            return None

        if isinstance(message, ChallengeMessage):
            if self._challenges.full():
                self._frames_dropped += 1
                logger.warning("Unsolicited challenge received, discarding")
            else:
                self._challenges.put_nowait(message)
            return None

        return message

    async def _flush_outbound(self, ws, outbound_task: asyncio.Task) -> None:
        """Write requests queued before the stop signal, in order."""
        if not outbound_task.done():
            outbound_task.cancel()
        (first,) = await asyncio.gather(outbound_task, return_exceptions=True)

        pending = []
        if first is not None and not isinstance(first, BaseException):
            pending.append(first)
        while not self._outbound.empty():
            pending.append(self._outbound.get_nowait())

        for text in pending:
            await ws.send(text)
            self._messages_sent += 1

        if pending:
            logger.debug(f"Flushed {len(pending)} queued requests before closing")

    async def _send_ping(self, ws) -> None:
        pong_waiter = await ws.ping()
        self._pings_sent += 1
        logger.debug(f"Keepalive ping sent after {self.keepalive_interval}s idle")
        if asyncio.isfuture(pong_waiter):
            pong_waiter.add_done_callback(self._on_pong)

    def _on_pong(self, waiter: asyncio.Future) -> None:
        if waiter.cancelled():
            return
        if waiter.exception() is not None:
            logger.debug(f"Ping abandoned: {waiter.exception()}")
            return
        self._pongs_received += 1
        logger.debug("Pong received")

    async def _shutdown(self, ws) -> None:
        self._state = ConnectionState.CLOSING
        try:
            await ws.close()
        except (WebSocketException, OSError) as e:
            logger.debug(f"Error sending close frame: {e}")
        finally:
            self._state = ConnectionState.CLOSED
            self._close_queues()
            logger.info(f"Connection to {self.ws_url} closed")

    def _close_queues(self) -> None:
        self._outbound.close()
        self._inbound.close()
        self._challenges.close()

    def get_stats(self) -> dict:
        """
        Get connection and message statistics.

        Returns:
            Dict containing:
                - state: Current connection state
                - frames_received: Frames read from the socket
                - messages_delivered: Messages handed to receive() callers
                - frames_dropped: Unrecognized or undeliverable frames
                - decode_errors: Frames that were not valid JSON objects
                - messages_sent: Requests written to the socket
                - pings_sent / pongs_received: Keepalive counters
        """
        return {
            "state": self._state.value,
            "frames_received": self._frames_received,
            "messages_delivered": self._messages_delivered,
            "frames_dropped": self._frames_dropped,
            "decode_errors": self._decode_errors,
            "messages_sent": self._messages_sent,
            "pings_sent": self._pings_sent,
            "pongs_received": self._pongs_received,
        }

    def __repr__(self) -> str:
        return f"ConnectionMultiplexer({self.ws_url}, state={self._state.value})"
