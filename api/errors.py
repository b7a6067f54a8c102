"""JSON error envelopes and the exception handlers that render them."""

import logging
import traceback

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def api_error(status_code: int, error: str) -> HTTPException:
    """Error in the ``{success: false, error}`` shape used by auth routes."""
    return HTTPException(status_code=status_code, detail={"success": False, "error": error})


def message_error(status_code: int, message: str) -> HTTPException:
    """Error in the ``{success: false, message}`` shape used by account routes."""
    return HTTPException(status_code=status_code, detail={"success": False, "message": message})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        """Render dict details as the body; normalise framework errors."""
        if isinstance(exc.detail, dict):
            content = exc.detail
        elif exc.status_code == 405:
            content = {"success": False, "error": "Method not allowed"}
        elif exc.status_code == 404:
            content = {"success": False, "error": "Not found"}
        else:
            content = {"success": False, "error": str(exc.detail)}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies are client errors (400), not 422."""
        errors = exc.errors()
        loc = errors[0].get("loc", ()) if errors else ()
        field = loc[-1] if len(loc) > 1 else None
        error = f"Invalid {field}" if isinstance(field, str) else "Invalid request body"
        return JSONResponse(status_code=400, content={"success": False, "error": error})

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        """Log unexpected errors and hide their details from the client."""
        logger.error(f"General Error: {str(exc)}")
        logger.error(traceback.format_exc())
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )
