"""
Catalog Services - product listing and pagination cursors.
"""

from .cursor import CursorCodec, CursorDecodeError
from .product_listing import ProductListingService

__all__ = [
    "CursorCodec",
    "CursorDecodeError",
    "ProductListingService",
]
