"""Configuration for the chatdesk auth server."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
