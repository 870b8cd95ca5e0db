"""
Cursor-paginated product listing with a cache-aside layer.

Read path:
1. Derive the cache key from the normalized filters (defaults applied).
2. Cache hit: return the stored page as is.
3. Cache miss: decode the cursor, fetch limit + 1 rows after it, build the
   page and its next cursor, store it with a short TTL.

Cached pages are never invalidated; a listing may lag the table by up to
the listing TTL. Cache failures degrade to a database read, database
failures propagate.
"""

import json
from typing import Any

from sqlalchemy.orm import Session

from shared.config.constants import SortField
from shared.config.logging import get_logger
from shared.infrastructure.cache import CacheStore, build_cache_key
from shared.infrastructure.redis.constants import (
    NAMESPACE_PRODUCT_LIST,
    PRODUCT_CACHE_TTL,
    PRODUCT_LIST_CACHE_TTL,
    get_product_cache_key,
)
from shared.utils.exceptions import InvalidCursorError, NotFoundError
from rest_api.models import Product
from rest_api.repositories import ProductFilters, get_product_repository
from .cursor import CursorCodec, CursorDecodeError

logger = get_logger(__name__)

# Model attribute holding the value each sort field orders by
SORT_ATTRIBUTES = {
    SortField.NAME: "name",
    SortField.PRICE: "price",
    SortField.CREATED_AT: "created_at",
    SortField.UPDATED_AT: "updated_at",
}


def _to_cache_payload(document: dict[str, Any]) -> str:
    return json.dumps(document, default=str, separators=(",", ":"))


class ProductListingService:
    """
    Product read service.

    Both the hit and the miss path return the JSON-decoded document, so a
    caller cannot tell whether a page came from Redis or from the database.
    """

    def __init__(self, db: Session, cache: CacheStore, codec: CursorCodec):
        self._repo = get_product_repository(db)
        self._cache = cache
        self._codec = codec

    async def _read_cached(self, key: str) -> Any | None:
        cached = await self._cache.get(key)
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning("Discarding unreadable cache entry", key=key)
            return None

    def _decode_cursor(self, filters: ProductFilters) -> tuple[Any, str] | None:
        if not filters.cursor:
            return None
        try:
            return self._codec.decode(filters.cursor, filters.sort_by)
        except CursorDecodeError as e:
            raise InvalidCursorError(str(e), sort_by=filters.sort_by) from e

    def _next_cursor(self, filters: ProductFilters, last: Product) -> str:
        value = getattr(last, SORT_ATTRIBUTES[filters.sort_by])
        return self._codec.encode(filters.sort_by, value, last.id)

    async def list_products(self, filters: ProductFilters) -> dict[str, Any]:
        """
        Return one page of products.

        Raises:
            InvalidCursorError: The supplied cursor cannot be decoded.
        """
        cache_key = build_cache_key(NAMESPACE_PRODUCT_LIST, filters.cache_params())

        cached = await self._read_cached(cache_key)
        if cached is not None:
            return cached

        after = self._decode_cursor(filters)
        rows = list(self._repo.find_page(filters, after))

        has_more = len(rows) > filters.limit
        if has_more:
            rows = rows[: filters.limit]

        document = {
            "success": True,
            "data": [row.to_dict() for row in rows],
            "pagination": {
                "nextCursor": self._next_cursor(filters, rows[-1]) if has_more else None,
                "hasMore": has_more,
                "limit": filters.limit,
            },
        }

        payload = _to_cache_payload(document)
        await self._cache.set(cache_key, payload, PRODUCT_LIST_CACHE_TTL)

        logger.debug(
            "Product page built",
            count=len(rows),
            has_more=has_more,
            sort_by=filters.sort_by,
            sort_order=filters.sort_order,
        )
        return json.loads(payload)

    async def get_product_by_id(self, product_id: str) -> dict[str, Any]:
        """
        Return one product.

        Raises:
            NotFoundError: The product is neither cached nor in the database.
        """
        cache_key = get_product_cache_key(product_id)

        cached = await self._read_cached(cache_key)
        if cached is not None:
            return cached

        product = self._repo.find_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        payload = _to_cache_payload(product.to_dict())
        await self._cache.set(cache_key, payload, PRODUCT_CACHE_TTL)
        return json.loads(payload)
