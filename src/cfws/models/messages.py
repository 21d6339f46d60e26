"""
Message Models: Type-safe representations of Crypto Facilities WebSocket messages

This module defines dataclasses for both directions of the feed:

Outbound (client -> server):
- SubscriptionRequest: subscribe/unsubscribe to a public or private feed
- ChallengeRequest: ask the server for a private-feed challenge

Inbound (server -> client), one class per payload shape:
- Control messages: version, subscription acks, errors, challenge answers
- Public feeds: ticker, ticker_lite, trade, book (deltas and snapshots), heartbeat
- Private feeds: balances/margins, account log, deposits/withdrawals, fills,
  open positions, open orders, notifications

Inbound models only pull out the fields needed to identify the message; the
complete payload is always kept on ``raw`` and is never interpreted further.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

logger = logging.getLogger(__name__)


# ============================================================================
# Outbound
# ============================================================================

@dataclass(frozen=True)
class SubscriptionRequest:
    """
    Subscribe or unsubscribe request for a single feed.

    Public requests carry no credentials. Private requests carry the
    api_key / original_challenge / signed_challenge triple. Absent fields
    are omitted from the wire format entirely rather than sent as null.

    Attributes:
        event: "subscribe" or "unsubscribe"
        feed: Feed name (e.g., "ticker", "fills")
        product_ids: Optional list of product identifiers (e.g., ["PI_XBTUSD"])
        api_key: Public API key (private feeds only)
        original_challenge: Challenge string issued by the server
        signed_challenge: Signature of the challenge
    """
    event: str
    feed: str
    product_ids: Optional[List[str]] = None
    api_key: Optional[str] = None
    original_challenge: Optional[str] = None
    signed_challenge: Optional[str] = None

    @property
    def is_private(self) -> bool:
        return self.api_key is not None

    def to_dict(self) -> dict:
        """Convert to the wire dictionary, dropping absent fields."""
        data = {"event": self.event, "feed": self.feed}
        if self.product_ids is not None:
            data["product_ids"] = list(self.product_ids)
        if self.api_key is not None:
            data["api_key"] = self.api_key
            data["original_challenge"] = self.original_challenge
            data["signed_challenge"] = self.signed_challenge
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class ChallengeRequest:
    """Request for a private-feed challenge."""
    api_key: str

    def to_dict(self) -> dict:
        return {"event": "challenge", "api_key": self.api_key}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ============================================================================
# Inbound: control messages
# ============================================================================

@dataclass
class VersionMessage:
    """Sent by the server right after the connection opens."""
    version: int
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "VersionMessage":
        return cls(version=int(data["version"]), raw=data)


@dataclass
class SubscribedMessage:
    """
    Acknowledgement of a subscribe or unsubscribe request.

    Attributes:
        event: "subscribed" or "unsubscribed"
        feed: Feed the acknowledgement refers to
        product_ids: Products covered by the acknowledgement, if any
    """
    event: str
    feed: str
    product_ids: Optional[List[str]]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "SubscribedMessage":
        return cls(
            event=data["event"],
            feed=data["feed"],
            product_ids=data.get("product_ids"),
            raw=data,
        )


@dataclass
class ErrorMessage:
    """Error reported by the server, e.g. for a malformed request."""
    event: str
    message: str
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "ErrorMessage":
        return cls(event=data["event"], message=str(data.get("message", "")), raw=data)


@dataclass
class ChallengeMessage:
    """
    Server answer to a ChallengeRequest.

    The ``message`` field holds the challenge string that has to be signed.
    """
    message: str
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "ChallengeMessage":
        challenge = data["message"]
        if not isinstance(challenge, str):
            raise ValueError(f"Challenge must be a string, got {type(challenge).__name__}")
        return cls(message=challenge, raw=data)


# ============================================================================
# Inbound: public feeds
# ============================================================================

@dataclass
class TickerLiteMessage:
    """Reduced ticker: best bid/ask and daily change."""
    product_id: str
    bid: float
    ask: float
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "TickerLiteMessage":
        return cls(
            product_id=data["product_id"],
            bid=float(data["bid"]),
            ask=float(data["ask"]),
            raw=data,
        )


@dataclass
class TickerMessage:
    """Full ticker including mark price and open interest."""
    product_id: str
    bid: float
    ask: float
    last: Optional[float]
    mark_price: Optional[float]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "TickerMessage":
        return cls(
            product_id=data["product_id"],
            bid=float(data["bid"]),
            ask=float(data["ask"]),
            last=_optional_float(data.get("last")),
            mark_price=_optional_float(data.get("markPrice")),
            raw=data,
        )


@dataclass
class TradeMessage:
    """A single executed trade."""
    product_id: Optional[str]
    side: str
    price: float
    qty: float
    seq: int
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "TradeMessage":
        return cls(
            product_id=data.get("product_id"),
            side=data["side"],
            price=float(data["price"]),
            qty=float(data["qty"]),
            seq=int(data["seq"]),
            raw=data,
        )


@dataclass
class TradeSnapshotMessage:
    """Recent trades, sent once after subscribing to the trade feed."""
    product_id: Optional[str]
    trades: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "TradeSnapshotMessage":
        return cls(
            product_id=data.get("product_id"),
            trades=list(data["trades"]),
            raw=data,
        )

    def __repr__(self) -> str:
        return f"TradeSnapshotMessage({self.product_id}, trades={len(self.trades)})"


@dataclass
class BookMessage:
    """
    Incremental order book change for a single price level.

    ``qty`` is the absolute size at ``price``; zero removes the level.
    """
    product_id: Optional[str]
    side: Optional[str]
    price: float
    qty: float
    seq: Optional[int]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "BookMessage":
        seq = data.get("seq")
        return cls(
            product_id=data.get("product_id"),
            side=data.get("side"),
            price=float(data["price"]),
            qty=float(data["qty"]),
            seq=int(seq) if seq is not None else None,
            raw=data,
        )


@dataclass
class BookSnapshotMessage:
    """Full order book state, sent once after subscribing to the book feed."""
    product_id: str
    seq: int
    bids: List[dict]
    asks: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "BookSnapshotMessage":
        return cls(
            product_id=data["product_id"],
            seq=int(data["seq"]),
            bids=list(data["bids"]),
            asks=list(data["asks"]),
            raw=data,
        )

    def __repr__(self) -> str:
        return (
            f"BookSnapshotMessage({self.product_id}, "
            f"bids={len(self.bids)}, asks={len(self.asks)}, seq={self.seq})"
        )


@dataclass
class HeartbeatMessage:
    """Periodic heartbeat from the server (milliseconds since epoch)."""
    time: int
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "HeartbeatMessage":
        return cls(time=int(data["time"]), raw=data)


# ============================================================================
# Inbound: private feeds
# ============================================================================

@dataclass
class AccountBalancesAndMarginsMessage:
    account: str
    margin_accounts: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "AccountBalancesAndMarginsMessage":
        return cls(
            account=data["account"],
            margin_accounts=list(data["margin_accounts"]),
            raw=data,
        )


@dataclass
class AccountLogMessage:
    """
    Account log entries.

    The snapshot carries a ``logs`` array; live updates carry a single
    ``new_entry`` which is normalized into a one-element list.
    """
    logs: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "AccountLogMessage":
        if "logs" in data:
            logs = list(data["logs"])
        else:
            logs = [data["new_entry"]]
        return cls(logs=logs, raw=data)


@dataclass
class DepositsWithdrawalsMessage:
    elements: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "DepositsWithdrawalsMessage":
        return cls(elements=list(data["elements"]), raw=data)


@dataclass
class FillsMessage:
    account: Optional[str]
    fills: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "FillsMessage":
        return cls(account=data.get("account"), fills=list(data["fills"]), raw=data)


@dataclass
class OpenPositionsMessage:
    account: Optional[str]
    positions: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "OpenPositionsMessage":
        return cls(account=data.get("account"), positions=list(data["positions"]), raw=data)


@dataclass
class OpenOrdersSnapshotMessage:
    account: Optional[str]
    orders: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "OpenOrdersSnapshotMessage":
        return cls(account=data.get("account"), orders=list(data["orders"]), raw=data)


@dataclass
class OpenOrdersMessage:
    """
    Single open-order update.

    ``is_cancel`` is True when the order left the book; ``order`` is only
    present for new or modified orders.
    """
    is_cancel: bool
    reason: Optional[str]
    order_id: Optional[str]
    order: Optional[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "OpenOrdersMessage":
        return cls(
            is_cancel=bool(data["is_cancel"]),
            reason=data.get("reason"),
            order_id=data.get("order_id"),
            order=data.get("order"),
            raw=data,
        )


@dataclass
class NotificationsMessage:
    notifications: List[dict]
    raw: dict = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "NotificationsMessage":
        return cls(notifications=list(data["notifications"]), raw=data)


InboundMessage = Union[
    VersionMessage,
    SubscribedMessage,
    ErrorMessage,
    ChallengeMessage,
    TickerMessage,
    TickerLiteMessage,
    TradeMessage,
    TradeSnapshotMessage,
    BookMessage,
    BookSnapshotMessage,
    HeartbeatMessage,
    AccountBalancesAndMarginsMessage,
    AccountLogMessage,
    DepositsWithdrawalsMessage,
    FillsMessage,
    OpenPositionsMessage,
    OpenOrdersMessage,
    OpenOrdersSnapshotMessage,
    NotificationsMessage,
]


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None
