"""
Product catalog endpoints (read-only).
"""

from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request

from shared.config.constants import Limits, SortField, SortOrder
from shared.config.settings import settings
from shared.security.rate_limit import limiter
from rest_api.dependencies import get_product_service
from rest_api.repositories import ProductFilters
from rest_api.schemas import ProductListResponse, ProductResponse
from rest_api.services.catalog import ProductListingService


router = APIRouter(prefix="/api/v1/products", tags=["products"])


@router.get("", response_model=ProductListResponse)
@limiter.limit(settings.products_rate_limit)
async def list_products(
    request: Request,
    cursor: str | None = Query(None, max_length=Limits.MAX_CURSOR_LENGTH),
    limit: int = Query(Limits.DEFAULT_PAGE_SIZE, ge=Limits.MIN_PAGE_SIZE, le=Limits.MAX_PAGE_SIZE),
    sort_by: Literal["name", "price", "createdAt", "updatedAt"] = Query(SortField.DEFAULT, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(SortOrder.DEFAULT, alias="sortOrder"),
    category: str | None = Query(None, max_length=100),
    search: str | None = Query(None, max_length=Limits.MAX_SEARCH_TERM_LENGTH),
    min_price: Decimal | None = Query(None, ge=0, alias="minPrice"),
    max_price: Decimal | None = Query(None, ge=0, alias="maxPrice"),
    service: ProductListingService = Depends(get_product_service),
):
    """
    List products with cursor pagination.

    Pass `pagination.nextCursor` from a response as `cursor` to get the next
    page. A cursor is only valid with the sortBy it was issued for.
    """
    filters = ProductFilters(
        cursor=cursor,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        category=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
    )
    return await service.list_products(filters)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    service: ProductListingService = Depends(get_product_service),
):
    """Get a single product by ID."""
    product = await service.get_product_by_id(product_id)
    return {"success": True, "data": product}
