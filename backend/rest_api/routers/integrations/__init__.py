"""
Integration routers: OAuth2 diagnostics and the external API proxy.
"""

from .external import router as external_router
from .oauth import router as oauth_router

__all__ = ["external_router", "oauth_router"]
