"""
cfws - asyncio client for the Crypto Facilities WebSocket API.
"""

from .clients import ConnectionState, CryptoFacilitiesWebSocket
from .models import MessageDecodeError, SubscriptionRequest, decode
from .utils import InvalidSecretEncoding, sign_challenge

__version__ = "0.1.0"

__all__ = [
    "CryptoFacilitiesWebSocket",
    "ConnectionState",
    "SubscriptionRequest",
    "decode",
    "MessageDecodeError",
    "sign_challenge",
    "InvalidSecretEncoding",
]
