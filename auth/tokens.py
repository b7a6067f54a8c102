"""Signed session tokens (JWT)."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(hours=1)


class ConfigurationError(RuntimeError):
    """Raised when a required secret or setting is missing."""


def token_snippet(token: Optional[str]) -> str:
    """Loggable prefix of a token."""
    if not token:
        return "<none>"
    return f"{token[:20]}..."


class TokenCodec:
    """Issues and checks HS256 tokens carrying ``{"id": principal_id}``."""

    def __init__(self, secret: Optional[str], lifetime: timedelta = TOKEN_LIFETIME):
        if not secret:
            raise ConfigurationError("JWT_SECRET is not set")
        self._secret = secret
        self._lifetime = lifetime

    @classmethod
    def from_settings(cls, settings) -> "TokenCodec":
        return cls(settings.jwt_secret)

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def issue(self, principal_id: str, now: Optional[datetime] = None) -> str:
        """Sign a token for principal_id that expires one lifetime after now."""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "id": principal_id,
            "iat": issued_at,
            "exp": issued_at + self._lifetime,
        }
        token = jwt.encode(payload, self._secret, algorithm=TOKEN_ALGORITHM)
        logger.debug(f"Issued token for {principal_id}: {token_snippet(token)}")
        return token

    def verify(self, token: Optional[str]) -> Optional[dict[str, Any]]:
        """
        Validate signature and expiry.
        Returns the claims, or None for any invalid token. Never raises.
        """
        try:
            return jwt.decode(token, self._secret, algorithms=[TOKEN_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.info(f"Expired token: {token_snippet(token)}")
        except jwt.InvalidTokenError as e:
            logger.info(f"Invalid token {token_snippet(token)}: {e}")
        return None

    def decode(self, token: Optional[str]) -> Optional[dict[str, Any]]:
        """Read claims WITHOUT checking the signature. Never authorize with this."""
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None
