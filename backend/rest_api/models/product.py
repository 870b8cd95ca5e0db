"""
Product model.

The listing path only reads this table. Rows are written by other services,
so the engine must tolerate inserts and updates between page requests.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import CheckConstraint, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


def _new_product_id() -> str:
    return str(uuid.uuid4())


class Product(TimestampMixin, Base):
    """A catalog product. `id` is an opaque UUID string, unique and immutable."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_product_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="chk_product_price_non_negative"),
        CheckConstraint("stock >= 0", name="chk_product_stock_non_negative"),
        Index("ix_product_category", "category"),
        Index("ix_product_price", "price"),
        Index("ix_product_updated_at", "updated_at"),
        # Keyset pagination: (sort column, id) for the default ordering
        Index("ix_product_cursor", "created_at", "id"),
        Index("ix_product_category_cursor", "category", "created_at", "id"),
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation with API field names."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price) if self.price is not None else None,
            "category": self.category,
            "stock": self.stock,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"
