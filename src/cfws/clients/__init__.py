"""
Infrastructure Layer - WebSocket connection, authentication and queues
"""

from .authenticator import Authenticator
from .cf_client import CryptoFacilitiesWebSocket
from .connection import ConnectionMultiplexer, ConnectionState
from .message_queue import AsyncMessageQueue

__all__ = [
    "CryptoFacilitiesWebSocket",
    "ConnectionMultiplexer",
    "ConnectionState",
    "Authenticator",
    "AsyncMessageQueue",
]
