"""Pricing lookups and inventory writes against the catalog tables."""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.enums import ProductStatus, ProductType
from storefront.domain.pricing import PricingView, effective_price
from storefront.models.product import Product, ProductVariant
from storefront.services.exceptions import ResourceNotFoundError


def _build_view(product: Product, variant: ProductVariant | None) -> PricingView:
    is_active = product.status == ProductStatus.active and product.deleted_at is None
    is_digital = product.product_type == ProductType.digital
    if variant is not None:
        return PricingView(
            product_id=product.id,
            variant_id=variant.id,
            unit_price=effective_price(product.base_price, product.sale_price, variant.price),
            available_stock=variant.stock_quantity,
            allow_backorder=product.allow_backorder,
            is_active=is_active and variant.is_active,
            name=product.name,
            sku=variant.sku,
            slug=product.slug,
            base_price=variant.price if variant.price is not None else product.base_price,
            attributes=dict(variant.attributes or {}),
            is_digital=is_digital,
        )
    return PricingView(
        product_id=product.id,
        variant_id=None,
        unit_price=effective_price(product.base_price, product.sale_price),
        available_stock=product.stock_quantity,
        allow_backorder=product.allow_backorder,
        is_active=is_active,
        name=product.name,
        sku=product.sku,
        slug=product.slug,
        base_price=product.base_price,
        is_digital=is_digital,
    )


async def get_pricing_view(
    db: AsyncSession,
    product_id: uuid.UUID,
    variant_id: uuid.UUID | None = None,
) -> PricingView:
    """Live pricing for a purchasable product; inactive items count as missing."""
    product = await db.get(Product, product_id, populate_existing=True)
    if product is None or not product.is_available:
        raise ResourceNotFoundError("Product not found")

    variant = None
    if variant_id is not None:
        variant = await db.get(ProductVariant, variant_id, populate_existing=True)
        if variant is None or variant.product_id != product.id or not variant.is_active:
            raise ResourceNotFoundError("Variant not found")
    return _build_view(product, variant)


async def load_pricing_views(
    db: AsyncSession,
    keys: Iterable[tuple[uuid.UUID, uuid.UUID | None]],
) -> dict[tuple[uuid.UUID, uuid.UUID | None], PricingView]:
    """Batch load; missing products are absent from the result, inactive ones are present with ``is_active=False``."""
    keys = list(keys)
    if not keys:
        return {}
    product_ids = {pid for pid, _ in keys}
    variant_ids = {vid for _, vid in keys if vid is not None}

    product_stmt = (
        select(Product).where(Product.id.in_(product_ids)).execution_options(populate_existing=True)
    )
    products = {p.id: p for p in (await db.execute(product_stmt)).scalars()}
    variants: dict[uuid.UUID, ProductVariant] = {}
    if variant_ids:
        variant_stmt = (
            select(ProductVariant)
            .where(ProductVariant.id.in_(variant_ids))
            .execution_options(populate_existing=True)
        )
        variants = {v.id: v for v in (await db.execute(variant_stmt)).scalars()}

    views: dict[tuple[uuid.UUID, uuid.UUID | None], PricingView] = {}
    for pid, vid in keys:
        product = products.get(pid)
        if product is None:
            continue
        variant = None
        if vid is not None:
            variant = variants.get(vid)
            if variant is None or variant.product_id != pid:
                continue
        views[(pid, vid)] = _build_view(product, variant)
    return views


async def decrement_stock(
    db: AsyncSession,
    product_id: uuid.UUID,
    variant_id: uuid.UUID | None,
    quantity: int,
) -> bool:
    """Conditional decrement; False when stock ran out since it was read."""
    if variant_id is not None:
        stmt = (
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .where(
                or_(
                    ProductVariant.stock_quantity >= quantity,
                    select(Product.allow_backorder)
                    .where(Product.id == ProductVariant.product_id)
                    .scalar_subquery(),
                )
            )
            .values(stock_quantity=ProductVariant.stock_quantity - quantity)
        )
    else:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .where(or_(Product.stock_quantity >= quantity, Product.allow_backorder.is_(True)))
            .values(stock_quantity=Product.stock_quantity - quantity)
        )
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


async def restock(
    db: AsyncSession,
    product_id: uuid.UUID,
    variant_id: uuid.UUID | None,
    quantity: int,
) -> None:
    if variant_id is not None:
        stmt = (
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .values(stock_quantity=ProductVariant.stock_quantity + quantity)
        )
    else:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
        )
    await db.execute(stmt.execution_options(synchronize_session=False))
