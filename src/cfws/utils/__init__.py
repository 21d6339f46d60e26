"""
Utility functions for cfws.
"""

from .signing import InvalidSecretEncoding, sign_challenge

__all__ = ["InvalidSecretEncoding", "sign_challenge"]
