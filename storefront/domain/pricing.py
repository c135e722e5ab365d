from __future__ import annotations

import uuid
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PricingView:
    """Read-only projection of a product (or variant) as carts and orders see it."""

    product_id: uuid.UUID
    variant_id: uuid.UUID | None
    unit_price: int
    available_stock: int
    allow_backorder: bool
    is_active: bool
    name: str
    sku: str | None = None
    slug: str | None = None
    base_price: int | None = None
    attributes: dict = field(default_factory=dict)
    is_digital: bool = False

    def can_supply(self, quantity: int) -> bool:
        return self.allow_backorder or quantity <= self.available_stock


def effective_price(base_price: int, sale_price: int | None, variant_price: int | None = None) -> int:
    """Variant price wins; otherwise a sale price lower than base; otherwise base."""
    if variant_price is not None:
        return variant_price
    if sale_price is not None and sale_price < base_price:
        return sale_price
    return base_price


def line_key(product_id: uuid.UUID, variant_id: uuid.UUID | None) -> str:
    return f"{product_id}:{variant_id or ''}"


def clamp_quantity(quantity: int, maximum: int) -> int:
    return max(1, min(quantity, maximum))
