"""API package for the sentinel services."""

from .app import get_app
from .services import SentinelService

__all__ = ["get_app", "SentinelService"]
