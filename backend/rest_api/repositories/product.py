"""
Product Repository - Data access for products.

Listing uses keyset pagination: each page continues strictly after the
(sort value, id) pair of the previous page's last row, ordered by
(sort column, id) in one direction. Rows inserted or updated between
requests therefore never shift the boundary the way OFFSET would.
"""

import string
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import Select, and_, or_
from sqlalchemy.orm import Session

from shared.config.constants import Limits, SortField, SortOrder
from shared.utils.exceptions import ClientInputError
from rest_api.models import Product
from .base import BaseRepository


SORT_COLUMNS = {
    SortField.NAME: Product.name,
    SortField.PRICE: Product.price,
    SortField.CREATED_AT: Product.created_at,
    SortField.UPDATED_AT: Product.updated_at,
}

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def _price_key(price: Decimal | None) -> str | None:
    """Canonical text for a price bound: 10, 10.0 and 10.00 all give "10"."""
    if price is None:
        return None
    return format(price.normalize(), "f")


@dataclass
class ProductFilters:
    """
    Normalized listing request.

    Out-of-range limits are clamped and unknown sort options fall back to
    the defaults. Prices are checked, not clamped: a negative bound or an
    inverted range is the caller's mistake.
    """

    cursor: str | None = None
    limit: int = Limits.DEFAULT_PAGE_SIZE
    sort_by: str = SortField.DEFAULT
    sort_order: str = SortOrder.DEFAULT
    category: str | None = None
    search: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None

    def __post_init__(self):
        """Validate and normalize filters."""
        self.limit = min(max(Limits.MIN_PAGE_SIZE, self.limit), Limits.MAX_PAGE_SIZE)

        if self.sort_by not in SortField.ALL:
            self.sort_by = SortField.DEFAULT
        if self.sort_order not in SortOrder.ALL:
            self.sort_order = SortOrder.DEFAULT

        self.cursor = self.cursor or None
        self.category = self.category or None
        if self.search:
            self.search = self.search.strip()[:Limits.MAX_SEARCH_TERM_LENGTH] or None
        else:
            self.search = None

        if self.min_price is not None:
            self.min_price = Decimal(str(self.min_price))
            if self.min_price < 0:
                raise ClientInputError("minPrice must be greater than or equal to 0", field="minPrice")
        if self.max_price is not None:
            self.max_price = Decimal(str(self.max_price))
            if self.max_price < 0:
                raise ClientInputError("maxPrice must be greater than or equal to 0", field="maxPrice")
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ClientInputError("minPrice cannot be greater than maxPrice", field="minPrice")

    def cache_params(self) -> dict[str, Any]:
        """
        Every field that changes the result, with defaults already applied.

        Equivalent requests map to the same values: prices lose trailing
        zeros and ASCII letters in the search term are lowercased.
        """
        return {
            "cursor": self.cursor,
            "limit": self.limit,
            "sort": f"{self.sort_by}:{self.sort_order}",
            "cat": self.category,
            "search": self.search.translate(_ASCII_LOWER) if self.search else None,
            "minp": _price_key(self.min_price),
            "maxp": _price_key(self.max_price),
        }


class ProductRepository(BaseRepository[Product]):
    """Read-only repository for Product entities."""

    @property
    def model(self) -> type[Product]:
        return Product

    def _apply_filters(self, query: Select, filters: ProductFilters) -> Select:
        """Apply equality, substring and price-range filters."""
        if filters.category:
            query = query.where(Product.category == filters.category)

        if filters.search:
            query = query.where(Product.name.icontains(filters.search, autoescape=True))

        if filters.min_price is not None:
            query = query.where(Product.price >= filters.min_price)
        if filters.max_price is not None:
            query = query.where(Product.price <= filters.max_price)

        return query

    def find_page(
        self,
        filters: ProductFilters,
        after: tuple[Any, str] | None = None,
    ) -> Sequence[Product]:
        """
        Fetch up to `limit + 1` products following the `after` position.

        The extra row is a probe: the caller uses it to tell whether another
        page exists and drops it from the response.

        Args:
            filters: Normalized listing filters
            after: (sort value, id) of the last row already returned, or None for page one
        """
        column = SORT_COLUMNS[filters.sort_by]
        descending = filters.sort_order == SortOrder.DESC

        query = self._apply_filters(self._base_query(), filters)

        if after is not None:
            value, last_id = after
            if descending:
                query = query.where(
                    or_(column < value, and_(column == value, Product.id < last_id))
                )
            else:
                query = query.where(
                    or_(column > value, and_(column == value, Product.id > last_id))
                )

        if descending:
            query = query.order_by(column.desc(), Product.id.desc())
        else:
            query = query.order_by(column.asc(), Product.id.asc())

        query = query.limit(filters.limit + 1)

        return self._db.execute(query).scalars().all()


def get_product_repository(db: Session) -> ProductRepository:
    """Factory function for ProductRepository."""
    return ProductRepository(db)
