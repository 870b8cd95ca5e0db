"""
Public routers: health, products, webhooks.
"""

from .health import router as health_router
from .products import router as products_router
from .webhooks import router as webhooks_router

__all__ = ["health_router", "products_router", "webhooks_router"]
