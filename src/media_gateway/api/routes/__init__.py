"""
API route modules.

Each module exposes a `router` included by the app factory.
"""

from media_gateway.api.routes import auth, downloads, files, health

__all__ = ["auth", "downloads", "files", "health"]
