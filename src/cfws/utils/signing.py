"""
Challenge signing for private feeds.

The server hands out a challenge string that must be answered with a
signature derived from the API secret. The algorithm is fixed by the
exchange and must match byte-for-byte:

    1. SHA-256 of the UTF-8 encoded challenge
    2. base64-decode the API secret
    3. HMAC-SHA-512 over the digest, keyed with the decoded secret
    4. base64-encode the HMAC output
"""

import base64
import binascii
import hashlib
import hmac


class InvalidSecretEncoding(ValueError):
    """Raised when the API secret is not valid base64."""


def decode_secret(api_secret: str) -> bytes:
    """
    Decode a base64 API secret into raw key bytes.
    
    Raises:
        InvalidSecretEncoding: If the secret is not valid base64.
    """
    try:
        return base64.b64decode(api_secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidSecretEncoding(f"API secret is not valid base64: {e}") from e


def sign_challenge(api_secret: str, challenge: str) -> str:
    """
    Sign a server-issued challenge.
    
    Args:
        api_secret: Base64 encoded API secret.
        challenge: Challenge string exactly as received from the server.
    
    Returns:
        Base64 encoded HMAC-SHA-512 signature.
    
    Raises:
        InvalidSecretEncoding: If api_secret is not valid base64.
    """
    key = decode_secret(api_secret)
    digest = hashlib.sha256(challenge.encode("utf-8")).digest()
    signature = hmac.new(key, digest, hashlib.sha512).digest()
    return base64.b64encode(signature).decode("ascii")
