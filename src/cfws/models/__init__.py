"""
cfws Domain Layer

This module contains the request and message models exchanged with the
Crypto Facilities WebSocket feed, plus the decoder for inbound frames.
"""

from .decoder import MessageDecodeError, decode
from .messages import (
    ChallengeMessage,
    ChallengeRequest,
    ErrorMessage,
    InboundMessage,
    SubscriptionRequest,
)

__all__ = [
    "decode",
    "MessageDecodeError",
    "InboundMessage",
    "ChallengeMessage",
    "ErrorMessage",
    "ChallengeRequest",
    "SubscriptionRequest",
]
