"""Session cookie transport for signed tokens."""

from typing import Optional

from fastapi import Request, Response

SESSION_COOKIE_NAME = "token"
SESSION_MAX_AGE_SECONDS = 60 * 60  # matches the token lifetime


class SessionCookieAdapter:
    """Puts a session token into the ``token`` cookie and reads it back."""

    def __init__(self, secure: bool = False):
        self._secure = secure

    @classmethod
    def from_settings(cls, settings) -> "SessionCookieAdapter":
        # Browsers drop Secure cookies on plain http, so only set it in production
        return cls(secure=settings.is_production)

    @property
    def secure(self) -> bool:
        return self._secure

    def _set(self, response: Response, value: str, max_age: int) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            value,
            max_age=max_age,
            path="/",
            secure=self._secure,
            httponly=True,
            samesite="strict",
        )

    def attach(self, token: str, response: Response) -> None:
        """Set the session cookie on the outgoing response."""
        self._set(response, token, SESSION_MAX_AGE_SECONDS)

    def clear(self, response: Response) -> None:
        """Expire the session cookie immediately (logout)."""
        self._set(response, "", -1)

    def read(self, request: Request) -> Optional[str]:
        """Token from the request cookie header, or None."""
        token = request.cookies.get(SESSION_COOKIE_NAME)
        return token or None
