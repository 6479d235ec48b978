"""Verification of access tokens issued by the auth provider.

Tokens are signed with a shared secret (HS256 by default). This service only
verifies them; issuance lives with the auth provider.
"""
from typing import Dict

import jwt

from plangate.config import settings

REQUIRED_CLAIMS = ("sub", "exp")


class JWTAuth:
    """Decodes and validates bearer tokens."""

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm

    def verify_access_token(self, token: str) -> Dict:
        """
        Verify and decode an access token.

        Args:
            token: JWT token string

        Returns:
            Decoded claims (at least ``sub``; ``email`` and ``role`` when present)

        Raises:
            jwt.ExpiredSignatureError: If token is expired
            jwt.InvalidTokenError: If token is invalid
        """
        return jwt.decode(
            token,
            self.secret_key,
            algorithms=[self.algorithm],
            options={"require": list(REQUIRED_CLAIMS)},
        )


# Global JWT auth instance
jwt_auth = JWTAuth()
