"""
Message decoder: classify raw text frames into typed inbound messages.

Most payloads carry no explicit type tag, so classification uses two lookup
tables applied in a fixed order, first match wins:

1. ``event`` literal (info, subscribed, error, challenge, ...)
2. ``feed`` literal, refined by companion fields where one feed name covers
   more than one shape (a ``trades`` array marks a trade snapshot, ``bids``
   and ``asks`` arrays mark a book snapshot, an ``orders`` array marks an
   open orders snapshot)

Frames matching neither table are dropped silently so that new feeds added
by the exchange never break the client. Text that is not a JSON object at
all raises MessageDecodeError; the connection loop logs and discards it.
"""

import json
import logging
from typing import Callable, Dict, Optional, Type

from .messages import (
    AccountBalancesAndMarginsMessage,
    AccountLogMessage,
    BookMessage,
    BookSnapshotMessage,
    ChallengeMessage,
    DepositsWithdrawalsMessage,
    ErrorMessage,
    FillsMessage,
    HeartbeatMessage,
    InboundMessage,
    NotificationsMessage,
    OpenOrdersMessage,
    OpenOrdersSnapshotMessage,
    OpenPositionsMessage,
    SubscribedMessage,
    TickerLiteMessage,
    TickerMessage,
    TradeMessage,
    TradeSnapshotMessage,
    VersionMessage,
)

logger = logging.getLogger(__name__)


class MessageDecodeError(ValueError):
    """Raised when a text frame is not a JSON object."""


EVENT_TYPES: Dict[str, Type] = {
    "info": VersionMessage,
    "subscribed": SubscribedMessage,
    "unsubscribed": SubscribedMessage,
    "error": ErrorMessage,
    "alert": ErrorMessage,
    "subscribed_failed": ErrorMessage,
    "unsubscribed_failed": ErrorMessage,
    "challenge": ChallengeMessage,
}


def _has_list(data: dict, *keys: str) -> bool:
    return all(isinstance(data.get(key), list) for key in keys)


def _trade_shape(data: dict) -> Type:
    return TradeSnapshotMessage if _has_list(data, "trades") else TradeMessage


def _book_shape(data: dict) -> Type:
    return BookSnapshotMessage if _has_list(data, "bids", "asks") else BookMessage


def _open_orders_shape(data: dict) -> Type:
    return OpenOrdersSnapshotMessage if _has_list(data, "orders") else OpenOrdersMessage


def _fixed(message_type: Type) -> Callable[[dict], Type]:
    return lambda data: message_type


FEED_TYPES: Dict[str, Callable[[dict], Type]] = {
    "ticker": _fixed(TickerMessage),
    "ticker_lite": _fixed(TickerLiteMessage),
    "trade": _trade_shape,
    "trade_snapshot": _fixed(TradeSnapshotMessage),
    "book": _book_shape,
    "book_snapshot": _fixed(BookSnapshotMessage),
    "heartbeat": _fixed(HeartbeatMessage),
    "account_balances_and_margins": _fixed(AccountBalancesAndMarginsMessage),
    "account_log": _fixed(AccountLogMessage),
    "account_log_snapshot": _fixed(AccountLogMessage),
    "deposits_withdrawals": _fixed(DepositsWithdrawalsMessage),
    "fills": _fixed(FillsMessage),
    "fills_snapshot": _fixed(FillsMessage),
    "open_positions": _fixed(OpenPositionsMessage),
    "open_orders": _open_orders_shape,
    "open_orders_snapshot": _fixed(OpenOrdersSnapshotMessage),
    "notifications_auth": _fixed(NotificationsMessage),
}


def classify(data: dict) -> Optional[Type]:
    """
    Pick the message class for a parsed payload.

    Args:
        data: Parsed JSON object

    Returns:
        The matching message class, or None if no rule applies.
    """
    event = data.get("event")
    if isinstance(event, str) and event in EVENT_TYPES:
        return EVENT_TYPES[event]

    feed = data.get("feed")
    if isinstance(feed, str) and feed in FEED_TYPES:
        return FEED_TYPES[feed](data)

    return None


def decode_payload(data: dict) -> Optional[InboundMessage]:
    """
    Build a typed message from an already parsed payload.

    Returns None when the payload matches no known shape, or when it names
    a known shape but lacks the fields that shape requires.
    """
    message_type = classify(data)
    if message_type is None:
        logger.debug(
            f"Dropping unrecognized message: event={data.get('event')}, feed={data.get('feed')}"
        )
        return None

    try:
        return message_type.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.debug(f"Dropping malformed {message_type.__name__} payload: {e!r}")
        return None


def decode(raw_text: str) -> Optional[InboundMessage]:
    """
    Decode a raw text frame.

    Args:
        raw_text: Text frame exactly as received from the socket

    Returns:
        Typed inbound message, or None if the frame is not a known shape.

    Raises:
        MessageDecodeError: If the frame is not valid JSON or not an object.

    Examples:
        >>> decode('{"event": "info", "version": 1}')
        VersionMessage(version=1)
    """
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Invalid JSON frame: {e}") from e

    if not isinstance(data, dict):
        raise MessageDecodeError(f"Expected JSON object, got {type(data).__name__}")

    return decode_payload(data)
