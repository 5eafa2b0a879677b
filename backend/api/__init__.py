"""
CrateMatch API package.

Provides the FastAPI application for the CrateMatch playlist matching service.
"""

from .app import app, create_app

__all__ = ["app", "create_app"]
