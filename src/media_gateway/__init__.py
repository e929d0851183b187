"""
Media Gateway - media download and OAuth brokering API.

Fetches media from third-party platforms through an external extraction tool,
serves the results as short-lived artifacts, and brokers per-platform OAuth
connections.
"""

from media_gateway.version import __version__

# API module is available but not exported by default
# Import explicitly: from media_gateway.api import create_app

__all__ = ["__version__"]
