"""
Identity checks for API callers.

Sign-in happens in the client with the Firebase SDK; requests carry the
resulting ID token as a bearer token and the backend only verifies it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when a token is missing, malformed, expired or revoked."""


@dataclass
class AuthUser:
    uid: str
    email: Optional[str] = None


class AuthClient(Protocol):
    def verify_token(self, token: str) -> AuthUser:
        ...


@dataclass
class InMemoryAuthClient:
    """Accepts a fixed set of tokens. For development and tests."""

    tokens: Dict[str, AuthUser] = field(default_factory=dict)

    def verify_token(self, token: str) -> AuthUser:
        user = self.tokens.get(token)
        if user is None:
            raise AuthError("Unknown token")
        return user


class FirebaseAuthClient:
    """Verifies Firebase ID tokens with the firebase_admin SDK."""

    def __init__(self, app=None, check_revoked: bool = False):
        self.app = app
        self.check_revoked = check_revoked

    def verify_token(self, token: str) -> AuthUser:
        from firebase_admin import auth

        try:
            claims = auth.verify_id_token(
                token, app=self.app, check_revoked=self.check_revoked
            )
        except (ValueError, auth.InvalidIdTokenError, auth.UserDisabledError) as e:
            logger.info("Rejected ID token: %s", e)
            raise AuthError(str(e)) from e
        return AuthUser(uid=claims["uid"], email=claims.get("email"))
