"""HTTP API for chatdesk."""

from .app import create_app

__all__ = ["create_app"]
