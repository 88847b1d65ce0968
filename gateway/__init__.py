"""
RoutePilot Gateway

FastAPI adapter exposing the route service to the presentation layer.
"""

from .app import create_app, build_service
from .config import Settings, get_settings

__all__ = ["create_app", "build_service", "Settings", "get_settings"]
