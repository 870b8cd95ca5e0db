"""
Pydantic schemas for the public API.

Field names follow the wire format (camelCase) through aliases; Python
code uses snake_case.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Products
# =============================================================================


class ProductOutput(ApiModel):
    id: str
    name: str
    description: str | None = None
    price: float
    category: str | None = None
    stock: int
    created_at: str
    updated_at: str


class PaginationOutput(ApiModel):
    next_cursor: str | None = None
    has_more: bool
    limit: int


class ProductListResponse(ApiModel):
    success: bool = True
    data: list[ProductOutput]
    pagination: PaginationOutput


class ProductResponse(ApiModel):
    success: bool = True
    data: ProductOutput


# =============================================================================
# OAuth diagnostics
# =============================================================================


class TokenPreview(ApiModel):
    value: str
    length: int
    state: str


class TokenTestResponse(ApiModel):
    success: bool = True
    message: str
    token: TokenPreview


# =============================================================================
# External API
# =============================================================================


class PostCreate(ApiModel):
    """Body for creating a post. Missing fields get demo defaults."""
    title: str = "Test Post"
    body: str = "This is a test post"
    user_id: int = Field(default=1, ge=1)


class ExternalResponse(ApiModel):
    success: bool = True
    message: str
    data: Any = None
    meta: Optional[dict[str, Any]] = None


# =============================================================================
# Webhooks
# =============================================================================


class WebhookAck(ApiModel):
    success: bool
    message: str
