"""Management commands for chatdesk."""

from .main import cli

__all__ = ["cli"]
