"""
Test suite for Authenticator.

Tests credential handling, the challenge handshake, caching of the signed
challenge and error propagation.
"""

import asyncio
import base64
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from cfws.clients.authenticator import Authenticator
from cfws.models.messages import ChallengeMessage
from cfws.utils.signing import InvalidSecretEncoding, sign_challenge

API_KEY = "public-key"
API_SECRET = base64.b64encode(b"super secret key bytes").decode()
CHALLENGE = "226aee50-88fc-4618-a42a-34f7709570b2"


def make_connection(challenge=CHALLENGE):
    """Mock multiplexer answering every challenge wait with ``challenge``."""
    connection = MagicMock()
    connection.send = AsyncMock(return_value=True)
    answer = None
    if challenge is not None:
        answer = ChallengeMessage(message=challenge, raw={"event": "challenge", "message": challenge})
    connection.wait_for_challenge = AsyncMock(return_value=answer)
    return connection


class TestCredentials:

    def test_no_credentials(self):
        auth = Authenticator(make_connection())
        assert not auth.has_credentials
        assert not auth.is_signed

    @pytest.mark.parametrize("key, secret", [(API_KEY, None), (None, API_SECRET)])
    def test_partial_credentials_rejected(self, key, secret):
        with pytest.raises(ValueError):
            Authenticator(make_connection(), key, secret)

    @pytest.mark.asyncio
    async def test_no_credentials_is_not_an_error(self):
        """Without credentials the handshake quietly reports failure."""
        connection = make_connection()
        auth = Authenticator(connection)

        assert await auth.ensure_challenge_signed() is False
        connection.send.assert_not_called()
        connection.wait_for_challenge.assert_not_called()
        assert auth.credentials_payload() is None


class TestHandshake:

    @pytest.mark.asyncio
    async def test_handshake(self):
        connection = make_connection()
        auth = Authenticator(connection, API_KEY, API_SECRET)

        assert await auth.ensure_challenge_signed() is True

        sent = json.loads(connection.send.call_args[0][0])
        assert sent == {"event": "challenge", "api_key": API_KEY}
        assert auth.challenge == CHALLENGE
        assert auth.signed_challenge == sign_challenge(API_SECRET, CHALLENGE)
        assert auth.credentials_payload() == {
            "api_key": API_KEY,
            "original_challenge": CHALLENGE,
            "signed_challenge": sign_challenge(API_SECRET, CHALLENGE),
        }

    @pytest.mark.asyncio
    async def test_idempotent(self):
        """A second call reuses the cached signature: one request, one sign."""
        connection = make_connection()
        auth = Authenticator(connection, API_KEY, API_SECRET)

        with patch(
            "cfws.clients.authenticator.sign_challenge", wraps=sign_challenge
        ) as signer:
            assert await auth.ensure_challenge_signed() is True
            assert await auth.ensure_challenge_signed() is True

        assert connection.send.call_count == 1
        assert connection.wait_for_challenge.call_count == 1
        assert signer.call_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_handshake(self):
        connection = make_connection()
        release = asyncio.Event()
        answer = ChallengeMessage(message=CHALLENGE, raw={})

        async def slow_answer():
            await release.wait()
            return answer

        connection.wait_for_challenge = AsyncMock(side_effect=slow_answer)
        auth = Authenticator(connection, API_KEY, API_SECRET)

        calls = asyncio.gather(auth.ensure_challenge_signed(), auth.ensure_challenge_signed())
        await asyncio.sleep(0.01)
        release.set()

        assert await calls == [True, True]
        assert connection.send.call_count == 1

    @pytest.mark.asyncio
    async def test_connection_ended_before_answer(self):
        connection = make_connection(challenge=None)
        auth = Authenticator(connection, API_KEY, API_SECRET)

        assert await auth.ensure_challenge_signed() is False
        assert not auth.is_signed

    @pytest.mark.asyncio
    async def test_connection_refuses_request(self):
        connection = make_connection()
        connection.send = AsyncMock(return_value=False)
        auth = Authenticator(connection, API_KEY, API_SECRET)

        assert await auth.ensure_challenge_signed() is False
        connection.wait_for_challenge.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_secret_surfaces(self):
        """A bad secret fails the attempt and caches nothing."""
        connection = make_connection()
        auth = Authenticator(connection, API_KEY, "not base64!")

        with pytest.raises(InvalidSecretEncoding):
            await auth.ensure_challenge_signed()

        assert not auth.is_signed
        assert auth.challenge is None
