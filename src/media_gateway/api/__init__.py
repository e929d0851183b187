"""
Media Gateway HTTP API.

FastAPI application factory, routes, middleware and schemas.
"""

from media_gateway.api.app import create_app

__all__ = ["create_app"]
