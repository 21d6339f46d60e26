"""
CryptoFacilitiesWebSocket - client handle for the Crypto Facilities feed.

This module ties the connection multiplexer and the authenticator together
behind a small API: subscribe/unsubscribe to public feeds, subscribe/
unsubscribe to private feeds (challenge handshake on first use), and read
decoded messages until the connection ends.

Example:
    async with CryptoFacilitiesWebSocket(api_key=key, api_secret=secret) as ws:
        await ws.subscribe("ticker", ["PI_XBTUSD"])
        await ws.subscribe_private("fills")
        async for message in ws:
            print(message)
"""

import logging
from typing import List, Optional

from ..models.messages import InboundMessage, SubscriptionRequest
from .authenticator import Authenticator
from .connection import DEFAULT_KEEPALIVE_INTERVAL, ConnectionMultiplexer, ConnectionState

logger = logging.getLogger(__name__)

DEFAULT_WS_URL = "wss://www.cryptofacilities.com/ws/v1"


class CryptoFacilitiesWebSocket:
    """
    Asynchronous client for the Crypto Facilities WebSocket API.

    There is no automatic reconnection. Once the connection ends,
    next_message() returns None and subscription calls return None;
    create a new client to connect again.

    Private subscriptions from several tasks at once are serialized by the
    authenticator, but the client is otherwise meant to be driven by one
    task issuing requests and any number of tasks reading messages.

    When inbound_queue_size messages are waiting unread, the connection
    stops reading the socket until a reader takes one; requests and
    keepalive pings still go out. A challenge answer that arrives behind
    those unread frames is only seen once they are consumed, so a
    subscribe_private() call without a concurrent reader can wait on a
    busy feed until next_message() is called.

    Attributes:
        ws_url: WebSocket endpoint URL
        connection: The underlying ConnectionMultiplexer
        authenticator: Challenge handshake state for private feeds
    """

    def __init__(
        self,
        ws_url: str = DEFAULT_WS_URL,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
        outbound_queue_size: int = 16,
        inbound_queue_size: int = 1000,
        open_timeout: Optional[float] = 10.0,
        close_timeout: float = 5.0,
    ):
        """
        Initialize the client. Call connect() (or use ``async with``) to open it.

        Args:
            ws_url: WebSocket endpoint URL. Default is the production feed.
            api_key: Public API key, required for private feeds.
            api_secret: Base64 encoded API secret, required with api_key.
            keepalive_interval: Idle seconds before a ping is sent.
            outbound_queue_size: Requests buffered before subscribe calls wait.
            inbound_queue_size: Messages buffered before reading from the socket pauses.
            open_timeout: Seconds allowed for the opening handshake.
            close_timeout: Seconds close() waits for the background task.

        Raises:
            ValueError: If only one of api_key / api_secret is given.
        """
        self.ws_url = ws_url
        self.connection = ConnectionMultiplexer(
            ws_url,
            keepalive_interval=keepalive_interval,
            outbound_queue_size=outbound_queue_size,
            inbound_queue_size=inbound_queue_size,
            open_timeout=open_timeout,
            close_timeout=close_timeout,
        )
        self.authenticator = Authenticator(self.connection, api_key, api_secret)

        logger.debug(
            f"CryptoFacilitiesWebSocket initialized: "
            f"url={ws_url}, private={self.authenticator.has_credentials}"
        )

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self.connection.state

    @property
    def is_connected(self) -> bool:
        return self.connection.is_open

    @property
    def has_credentials(self) -> bool:
        return self.authenticator.has_credentials

    async def connect(self) -> None:
        """
        Open the WebSocket connection and start the background task.

        Raises:
            OSError, websockets.exceptions.WebSocketException,
            asyncio.TimeoutError: On connection failure.
        """
        await self.connection.start()

    async def close(self) -> None:
        """
        Close the connection and wait for the background task to exit.

        A close frame is sent on a best-effort basis; no message is delivered
        after this returns.
        """
        await self.connection.close()

    async def __aenter__(self) -> "CryptoFacilitiesWebSocket":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public feeds
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        feed: str,
        product_ids: Optional[List[str]] = None,
    ) -> Optional[SubscriptionRequest]:
        """
        Subscribe to a public feed.

        Args:
            feed: Feed name (e.g., "ticker", "book", "heartbeat").
            product_ids: Products to subscribe to, omitted from the request if None.

        Returns:
            The queued request, or None if the connection has ended.
        """
        request = SubscriptionRequest("subscribe", feed, _products(product_ids))
        logger.info(f"Subscribe to public feed: {feed}")
        return await self._send(request)

    async def unsubscribe(
        self,
        feed: str,
        product_ids: Optional[List[str]] = None,
    ) -> Optional[SubscriptionRequest]:
        """Unsubscribe from a public feed. See subscribe()."""
        request = SubscriptionRequest("unsubscribe", feed, _products(product_ids))
        logger.info(f"Unsubscribe from public feed: {feed}")
        return await self._send(request)

    # ------------------------------------------------------------------
    # Private feeds
    # ------------------------------------------------------------------

    async def subscribe_private(self, feed: str) -> Optional[SubscriptionRequest]:
        """
        Subscribe to a private feed.

        Performs the challenge handshake on first use.

        Returns:
            The queued request, or None if no credentials are configured or
            the connection ended.

        Raises:
            InvalidSecretEncoding: If the API secret is not valid base64.
        """
        return await self._send_private("subscribe", feed)

    async def unsubscribe_private(self, feed: str) -> Optional[SubscriptionRequest]:
        """Unsubscribe from a private feed. See subscribe_private()."""
        return await self._send_private("unsubscribe", feed)

    async def _send_private(self, event: str, feed: str) -> Optional[SubscriptionRequest]:
        if not await self.authenticator.ensure_challenge_signed():
            return None

        request = SubscriptionRequest(event, feed, **self.authenticator.credentials_payload())
        logger.info(f"Private {event}: {feed}")
        return await self._send(request)

    async def _send(self, request: SubscriptionRequest) -> Optional[SubscriptionRequest]:
        if await self.connection.send(request.to_json()):
            return request
        return None

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def next_message(self, timeout: Optional[float] = None) -> Optional[InboundMessage]:
        """
        Wait for the next decoded message.

        Args:
            timeout: Optional timeout in seconds.

        Returns:
            The next message, or None once the connection has ended.

        Raises:
            asyncio.TimeoutError: If timeout is specified and exceeded.
        """
        return await self.connection.receive(timeout=timeout)

    def __aiter__(self) -> "CryptoFacilitiesWebSocket":
        return self

    async def __anext__(self) -> InboundMessage:
        message = await self.next_message()
        if message is None:
            raise StopAsyncIteration
        return message

    def get_stats(self) -> dict:
        """Connection statistics plus authentication status."""
        stats = self.connection.get_stats()
        stats["authenticated"] = self.authenticator.is_signed
        return stats

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"CryptoFacilitiesWebSocket(state={stats['state']}, "
            f"delivered={stats['messages_delivered']}, "
            f"authenticated={stats['authenticated']})"
        )


def _products(product_ids: Optional[List[str]]) -> Optional[List[str]]:
    return list(product_ids) if product_ids is not None else None
