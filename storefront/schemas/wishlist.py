from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class WishlistToggle(BaseModel):
    product_id: UUID


class WishlistToggleResult(BaseModel):
    action: Literal["added", "removed"]
    count: int


class WishlistProductRead(BaseModel):
    id: UUID
    name: str
    slug: str
    base_price: int
    sale_price: int | None
    stock_quantity: int

    model_config = ConfigDict(from_attributes=True)
