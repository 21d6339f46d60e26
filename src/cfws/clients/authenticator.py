"""
Challenge-response authentication for private feeds.

Private subscriptions must carry the API key, a challenge issued by the
server and the signature of that challenge. The challenge is requested once
per connection, signed, and cached for every later private request.
"""

import asyncio
import logging
from typing import Optional

from ..models.messages import ChallengeRequest
from ..utils.signing import sign_challenge
from .connection import ConnectionMultiplexer

logger = logging.getLogger(__name__)


class Authenticator:
    """
    Performs the challenge handshake through a ConnectionMultiplexer.

    The challenge answer is read from the multiplexer's dedicated challenge
    slot, so ordinary consumers of receive() can keep reading while a
    handshake is in progress without stealing the answer.

    Attributes:
        api_key: Public API key, or None for public-only use
    """

    def __init__(
        self,
        connection: ConnectionMultiplexer,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
    ):
        """
        Args:
            connection: Multiplexer used to send the request and wait for the answer.
            api_key: Public API key.
            api_secret: Base64 encoded API secret.

        Raises:
            ValueError: If only one of api_key / api_secret is given.
        """
        if (api_key is None) != (api_secret is None):
            raise ValueError("api_key and api_secret must be provided together")

        self.api_key = api_key
        self._api_secret = api_secret
        self._connection = connection
        self._lock = asyncio.Lock()

        self._challenge: Optional[str] = None
        self._signed_challenge: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return self.api_key is not None

    @property
    def is_signed(self) -> bool:
        return self._signed_challenge is not None

    @property
    def challenge(self) -> Optional[str]:
        return self._challenge

    @property
    def signed_challenge(self) -> Optional[str]:
        return self._signed_challenge

    async def ensure_challenge_signed(self) -> bool:
        """
        Make sure a signed challenge is available.

        Only the first successful call does any I/O; later calls return the
        cached result. Concurrent callers share one handshake.

        Returns:
            True if a signed challenge is available, False if there are no
            credentials or the connection ended before the server answered.

        Raises:
            InvalidSecretEncoding: If the API secret is not valid base64.
        """
        if not self.has_credentials:
            logger.warning("No API credentials configured, private feeds unavailable")
            return False

        async with self._lock:
            if self.is_signed:
                return True

            request = ChallengeRequest(api_key=self.api_key)
            if not await self._connection.send(request.to_json()):
                return False

            logger.info("Waiting for challenge")
            answer = await self._connection.wait_for_challenge()
            if answer is None:
                logger.warning("Connection ended before a challenge was received")
                return False

            signed = sign_challenge(self._api_secret, answer.message)
            self._challenge = answer.message
            self._signed_challenge = signed
            logger.info("Challenge received and signed")
            return True

    def credentials_payload(self) -> Optional[dict]:
        """The api_key / original_challenge / signed_challenge triple, once signed."""
        if not self.is_signed:
            return None
        return {
            "api_key": self.api_key,
            "original_challenge": self._challenge,
            "signed_challenge": self._signed_challenge,
        }

    def __repr__(self) -> str:
        return f"Authenticator(credentials={self.has_credentials}, signed={self.is_signed})"
