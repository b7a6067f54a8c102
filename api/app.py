"""FastAPI application factory and configuration."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from auth.cookies import SessionCookieAdapter
from auth.database import UserDatabase
from auth.email_service import EmailService
from auth.tokens import TokenCodec
from config.settings import Settings, get_settings

from .auth_routes import router as auth_router
from .errors import register_exception_handlers
from .pages import router as pages_router
from .routes import debug_router, router
from .user_routes import router as user_router

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID for log correlation."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting chatdesk auth server...")

    user_db: UserDatabase = app.state.user_db
    try:
        await user_db.connect()
        logger.info("MongoDB connected")
    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        raise

    logger.info(f"Email service using {app.state.email_service.backend} backend")

    yield

    await user_db.close()
    logger.info("Auth server shutting down...")


def create_app(
    settings: Optional[Settings] = None,
    user_db: Optional[UserDatabase] = None,
    email_service: Optional[EmailService] = None,
) -> FastAPI:
    """
    Create the auth server application.

    Components are built from settings unless passed in; a missing
    JWT secret aborts here, before the server accepts requests.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="chatdesk Auth Server",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.token_codec = TokenCodec.from_settings(settings)
    app.state.cookies = SessionCookieAdapter.from_settings(settings)
    app.state.user_db = user_db or UserDatabase.from_settings(settings)
    app.state.email_service = email_service or EmailService.from_settings(settings)

    # Add request ID middleware for log correlation
    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(router)
    app.include_router(pages_router)
    if settings.enable_debug_routes:
        logger.warning("Debug routes enabled at /api/debug")
        app.include_router(debug_router)

    return app
