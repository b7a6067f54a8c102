"""Dependency injection for FastAPI.

Components are built once in ``create_app`` and stored on ``app.state``;
these accessors hand them to route handlers.
"""

from fastapi import HTTPException, Request

from auth.cookies import SessionCookieAdapter
from auth.database import UserDatabase
from auth.email_service import EmailService
from auth.tokens import TokenCodec
from config.settings import Settings


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=503,
            detail={"success": False, "error": "Authentication not configured"},
        )
    return value


def get_app_settings(request: Request) -> Settings:
    return _state(request, "settings")


def get_user_db(request: Request) -> UserDatabase:
    return _state(request, "user_db")


def get_email_service(request: Request) -> EmailService:
    return _state(request, "email_service")


def get_token_codec(request: Request) -> TokenCodec:
    return _state(request, "token_codec")


def get_cookies(request: Request) -> SessionCookieAdapter:
    return _state(request, "cookies")
