from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CartItemCreate(BaseModel):
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(default=1, gt=0)
    # Body fallback for clients that cannot keep cookies or headers.
    session_token: Optional[str] = Field(default=None, max_length=128)


class CartItemUpdate(BaseModel):
    item_id: UUID
    # <= 0 removes the line
    quantity: int
    session_token: Optional[str] = Field(default=None, max_length=128)


class CartLineRead(BaseModel):
    id: UUID
    product_id: UUID
    variant_id: UUID | None
    name: str
    slug: str | None = None
    sku: str | None = None
    price: int
    original_price: int | None = None
    quantity: int
    max_quantity: int
    allow_backorder: bool
    variant_info: dict | None = None
    line_total: int

    model_config = ConfigDict(from_attributes=True)


class CartRead(BaseModel):
    cart_id: UUID | None
    items: List[CartLineRead] = Field(default_factory=list)
    subtotal: int = 0
    item_count: int = 0
    session_token: str | None = None
