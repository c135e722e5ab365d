"""Cart engine: one cart per owner, lines deduplicated by ``line_key``."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.db.operations import flush_async, insert_in_savepoint
from storefront.domain.owner import CartOwner
from storefront.domain.pricing import PricingView, clamp_quantity, line_key
from storefront.models.cart import Cart, CartItem
from storefront.services import catalog
from storefront.services.exceptions import (
    ConflictError,
    DomainValidationError,
    InsufficientStockError,
    OutOfStockError,
    ResourceNotFoundError,
)
from storefront.utils.dates import older_than, utcnow

logger = get_logger(__name__)


@dataclass(slots=True)
class CartLineView:
    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: uuid.UUID | None
    name: str
    slug: str | None
    sku: str | None
    price: int
    original_price: int | None
    quantity: int
    max_quantity: int
    allow_backorder: bool
    variant_info: dict | None
    line_total: int


@dataclass(slots=True)
class CartView:
    cart_id: uuid.UUID | None
    items: list[CartLineView] = field(default_factory=list)
    subtotal: int = 0
    item_count: int = 0


def _owner_clause(owner: CartOwner):
    if owner.is_guest:
        return Cart.session_token == owner.session_token
    return Cart.user_id == owner.user_id


def is_expired_guest(record) -> bool:
    """Guest carts and wishlists lapse after the guest session lifetime without activity."""
    if record.session_token is None:
        return False
    return older_than(record.updated_at, timedelta(days=settings.GUEST_SESSION_MAX_AGE_DAYS))


def _ensure_supply(view: PricingView, quantity: int) -> None:
    if view.allow_backorder:
        return
    if view.available_stock <= 0:
        raise OutOfStockError(f"{view.name} is out of stock")
    if quantity > view.available_stock:
        raise InsufficientStockError(
            f"Only {view.available_stock} units of {view.name} available",
            available=view.available_stock,
        )


async def find_cart(db: AsyncSession, owner: CartOwner) -> Cart | None:
    """Existing cart for ``owner``; an expired guest cart is discarded and reported as absent."""
    stmt = select(Cart).where(_owner_clause(owner)).execution_options(populate_existing=True)
    cart = (await db.execute(stmt)).scalar_one_or_none()
    if cart is not None and is_expired_guest(cart):
        logger.info("Discarding expired guest cart", extra={"cart_id": str(cart.id)})
        await db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
        await db.execute(delete(Cart).where(Cart.id == cart.id))
        return None
    return cart


async def get_or_create_cart(db: AsyncSession, owner: CartOwner) -> Cart:
    cart = await find_cart(db, owner)
    if cart is not None:
        return cart
    cart = Cart(user_id=owner.user_id, session_token=owner.session_token)
    if await insert_in_savepoint(db, cart):
        return cart
    # created by a concurrent request for the same owner
    cart = await find_cart(db, owner)
    if cart is None:
        raise ConflictError("Could not create cart, please retry")
    return cart


async def _find_line(db: AsyncSession, cart_id: uuid.UUID, key: str) -> CartItem | None:
    stmt = (
        select(CartItem)
        .where(CartItem.cart_id == cart_id, CartItem.line_key == key)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _get_owned_item(db: AsyncSession, owner: CartOwner, item_id: uuid.UUID) -> tuple[Cart, CartItem]:
    cart = await find_cart(db, owner)
    item = None
    if cart is not None:
        stmt = (
            select(CartItem)
            .where(CartItem.id == item_id, CartItem.cart_id == cart.id)
            .execution_options(populate_existing=True)
        )
        item = (await db.execute(stmt)).scalar_one_or_none()
    if cart is None or item is None:
        raise ResourceNotFoundError("Cart item not found")
    return cart, item


async def _cart_items(db: AsyncSession, cart_id: uuid.UUID) -> list[CartItem]:
    stmt = (
        select(CartItem)
        .where(CartItem.cart_id == cart_id)
        .order_by(CartItem.created_at, CartItem.id)
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(stmt)).scalars())


async def get_cart(db: AsyncSession, owner: CartOwner | None) -> CartView:
    """Cart joined with live pricing; inactive or deleted products are left out."""
    if owner is None:
        return CartView(cart_id=None)
    cart = await find_cart(db, owner)
    if cart is None:
        return CartView(cart_id=None)

    items = await _cart_items(db, cart.id)
    views = await catalog.load_pricing_views(db, [(i.product_id, i.variant_id) for i in items])
    max_line = settings.CART_MAX_LINE_QUANTITY

    lines: list[CartLineView] = []
    for item in items:
        view = views.get((item.product_id, item.variant_id))
        if view is None or not view.is_active:
            continue
        original = view.base_price if view.base_price and view.base_price > view.unit_price else None
        lines.append(
            CartLineView(
                id=item.id,
                product_id=item.product_id,
                variant_id=item.variant_id,
                name=view.name,
                slug=view.slug,
                sku=view.sku,
                price=view.unit_price,
                original_price=original,
                quantity=item.quantity,
                max_quantity=max_line if view.allow_backorder else max(0, min(max_line, view.available_stock)),
                allow_backorder=view.allow_backorder,
                variant_info=view.attributes or None,
                line_total=view.unit_price * item.quantity,
            )
        )
    return CartView(
        cart_id=cart.id,
        items=lines,
        subtotal=sum(line.line_total for line in lines),
        item_count=sum(line.quantity for line in lines),
    )


async def add_item(
    db: AsyncSession,
    owner: CartOwner,
    product_id: uuid.UUID,
    variant_id: uuid.UUID | None = None,
    quantity: int = 1,
) -> CartView:
    if quantity < 1:
        raise DomainValidationError("Quantity must be at least 1")
    view = await catalog.get_pricing_view(db, product_id, variant_id)
    _ensure_supply(view, 1)

    cart = await get_or_create_cart(db, owner)
    key = line_key(product_id, variant_id)
    max_line = settings.CART_MAX_LINE_QUANTITY

    # A concurrent insert of the same key loses the race once; the retry
    # finds the row and merges into it.
    for _ in range(2):
        existing = await _find_line(db, cart.id, key)
        if existing is not None:
            merged = clamp_quantity(existing.quantity + quantity, max_line)
            _ensure_supply(view, merged)
            existing.quantity = merged
            existing.price_snapshot = view.unit_price
            await flush_async(db)
            break

        new_quantity = clamp_quantity(quantity, max_line)
        _ensure_supply(view, new_quantity)
        line = CartItem(
            cart_id=cart.id,
            product_id=product_id,
            variant_id=variant_id,
            line_key=key,
            quantity=new_quantity,
            price_snapshot=view.unit_price,
        )
        if await insert_in_savepoint(db, line):
            break
    else:
        raise DomainValidationError("Could not add item to cart, please retry")

    cart.updated_at = utcnow()
    await flush_async(db)
    return await get_cart(db, owner)


async def update_quantity(db: AsyncSession, owner: CartOwner, item_id: uuid.UUID, quantity: int) -> CartView:
    """Set a line's quantity; zero or less removes the line."""
    cart, item = await _get_owned_item(db, owner, item_id)
    if quantity <= 0:
        await db.execute(delete(CartItem).where(CartItem.id == item.id))
    else:
        view = await catalog.get_pricing_view(db, item.product_id, item.variant_id)
        new_quantity = clamp_quantity(quantity, settings.CART_MAX_LINE_QUANTITY)
        _ensure_supply(view, new_quantity)
        item.quantity = new_quantity
        item.price_snapshot = view.unit_price
    cart.updated_at = utcnow()
    await flush_async(db)
    return await get_cart(db, owner)


async def remove_item(db: AsyncSession, owner: CartOwner | None, item_id: uuid.UUID) -> CartView:
    cart = await find_cart(db, owner) if owner else None
    if cart is not None:
        await db.execute(delete(CartItem).where(CartItem.id == item_id, CartItem.cart_id == cart.id))
        cart.updated_at = utcnow()
        await flush_async(db)
    return await get_cart(db, owner)


async def clear(db: AsyncSession, owner: CartOwner | None) -> CartView:
    cart = await find_cart(db, owner) if owner else None
    if cart is not None:
        await clear_cart_by_id(db, cart)
    return await get_cart(db, owner)


async def clear_cart_by_id(db: AsyncSession, cart: Cart) -> None:
    await db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
    cart.updated_at = utcnow()
    await flush_async(db)


async def merge_guest_cart(db: AsyncSession, session_token: str, user_id: uuid.UUID) -> int:
    """Fold the guest cart into the user's cart and delete it.

    The user's own lines win on conflict; guest-only lines are revalidated at
    current price and clamped to stock. Returns the number of lines moved.
    Running it again, or concurrently, is a no-op once the guest cart is gone.
    """
    guest_cart = await find_cart(db, CartOwner.guest(session_token))
    if guest_cart is None:
        return 0

    user_cart = await get_or_create_cart(db, CartOwner.authenticated(user_id))
    user_keys = set(
        (await db.execute(select(CartItem.line_key).where(CartItem.cart_id == user_cart.id))).scalars()
    )
    guest_items = await _cart_items(db, guest_cart.id)
    views = await catalog.load_pricing_views(db, [(i.product_id, i.variant_id) for i in guest_items])

    moved = 0
    for item in guest_items:
        if item.line_key in user_keys:
            continue
        view = views.get((item.product_id, item.variant_id))
        if view is None or not view.is_active:
            continue
        quantity = clamp_quantity(item.quantity, settings.CART_MAX_LINE_QUANTITY)
        if not view.allow_backorder:
            quantity = min(quantity, view.available_stock)
        if quantity <= 0:
            continue
        line = CartItem(
            cart_id=user_cart.id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            line_key=item.line_key,
            quantity=quantity,
            price_snapshot=view.unit_price,
        )
        # a concurrent insert of the same key means the user's line wins
        if await insert_in_savepoint(db, line):
            moved += 1

    await db.execute(delete(CartItem).where(CartItem.cart_id == guest_cart.id))
    await db.execute(delete(Cart).where(Cart.id == guest_cart.id))
    user_cart.updated_at = utcnow()
    await flush_async(db)

    logger.info(
        "Guest cart merged",
        extra={"user_id": str(user_id), "lines_moved": moved, "guest_lines": len(guest_items)},
    )
    return moved
