"""Plans, health and debug routes."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from auth.database import UserDatabase
from auth.middleware import extract_bearer_token
from auth.tokens import TokenCodec, token_snippet

from .dependencies import get_token_codec, get_user_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["plans"])

# Mounted only when debug routes are enabled.
debug_router = APIRouter(prefix="/api/debug", tags=["debug"])


@router.get("/api/plans")
async def list_plans(user_db: UserDatabase = Depends(get_user_db)):
    """All plans, cheapest first."""
    try:
        plans = await user_db.list_plans()
        return {"plans": [plan.model_dump() for plan in plans]}
    except Exception as e:
        logger.error(f"Error fetching plans: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )


@router.get("/health")
async def health():
    return {"status": "healthy"}


@router.get("/")
async def root():
    return {"service": "chatdesk-auth", "status": "ok"}


@debug_router.get("/auth")
async def debug_auth(request: Request, codec: TokenCodec = Depends(get_token_codec)):
    """
    Report what the server sees for the caller's bearer token.

    Always answers 200. Only a snippet of the token is echoed back.
    """
    try:
        token = extract_bearer_token(request)
        if not token:
            return {"success": False, "debug": {"hasToken": False}}

        return {
            "success": True,
            "debug": {
                "hasToken": True,
                "tokenSnippet": token_snippet(token),
                "decoded": codec.decode(token),
                "isValid": codec.verify(token) is not None,
            },
        }
    except Exception as e:
        logger.error(f"Debug auth error: {e}")
        return {"success": False, "error": "Debug failed"}
