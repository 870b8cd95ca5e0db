"""
SQLAlchemy ORM Models Package.

- base: Base class and TimestampMixin
- product: Product
"""

from .base import Base, TimestampMixin
from .product import Product

__all__ = [
    "Base",
    "TimestampMixin",
    "Product",
]
