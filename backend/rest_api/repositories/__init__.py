"""
Repository Pattern implementation.

Usage:
    from rest_api.repositories import ProductFilters, get_product_repository

    repo = get_product_repository(db)
    rows = repo.find_page(ProductFilters(category="books", limit=20))
    product = repo.find_by_id("3f0c...")
"""

from .base import BaseRepository
from .product import ProductRepository, ProductFilters, SORT_COLUMNS, get_product_repository

__all__ = [
    "BaseRepository",
    "ProductRepository",
    "ProductFilters",
    "SORT_COLUMNS",
    "get_product_repository",
]
