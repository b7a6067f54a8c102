"""Authentication dependencies for FastAPI routes."""

import logging
from typing import Optional

from fastapi import HTTPException, Request

from .models import User

logger = logging.getLogger(__name__)


def extract_bearer_token(request: Request) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header, or None."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=401, detail={"success": False, "message": message})


async def require_user(request: Request) -> User:
    """
    Dependency that requires a valid session.
    Raises 401 without a usable token and 404 if the user no longer exists.
    """
    token = extract_bearer_token(request) or request.app.state.cookies.read(request)
    if not token:
        raise _unauthorized("No token provided")

    claims = request.app.state.token_codec.verify(token)
    if not claims or not claims.get("id"):
        raise _unauthorized("Invalid token")

    user = await request.app.state.user_db.get_user_by_id(claims["id"])
    if not user:
        raise HTTPException(
            status_code=404, detail={"success": False, "message": "User not found"}
        )
    return user
