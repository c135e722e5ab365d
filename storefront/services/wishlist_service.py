from __future__ import annotations

import uuid
from typing import List, Literal

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.db.operations import flush_async, insert_in_savepoint
from storefront.domain.enums import ProductStatus
from storefront.domain.owner import CartOwner
from storefront.models.product import Product
from storefront.models.wishlist import Wishlist, WishlistItem
from storefront.services.cart_service import is_expired_guest
from storefront.services.exceptions import ConflictError, ResourceNotFoundError
from storefront.utils.dates import utcnow

logger = get_logger(__name__)


def _owner_clause(owner: CartOwner):
    if owner.is_guest:
        return Wishlist.session_token == owner.session_token
    return Wishlist.user_id == owner.user_id


async def find_wishlist(db: AsyncSession, owner: CartOwner) -> Wishlist | None:
    """An expired guest wishlist is discarded and reported as absent."""
    stmt = select(Wishlist).where(_owner_clause(owner)).execution_options(populate_existing=True)
    wishlist = (await db.execute(stmt)).scalar_one_or_none()
    if wishlist is not None and is_expired_guest(wishlist):
        logger.info("Discarding expired guest wishlist", extra={"wishlist_id": str(wishlist.id)})
        await db.execute(delete(WishlistItem).where(WishlistItem.wishlist_id == wishlist.id))
        await db.execute(delete(Wishlist).where(Wishlist.id == wishlist.id))
        return None
    return wishlist


async def get_or_create_wishlist(db: AsyncSession, owner: CartOwner) -> Wishlist:
    wishlist = await find_wishlist(db, owner)
    if wishlist is not None:
        return wishlist
    wishlist = Wishlist(user_id=owner.user_id, session_token=owner.session_token)
    if await insert_in_savepoint(db, wishlist):
        return wishlist
    wishlist = await find_wishlist(db, owner)
    if wishlist is None:
        raise ConflictError("Could not create wishlist, please retry")
    return wishlist


async def _count(db: AsyncSession, wishlist_id: uuid.UUID) -> int:
    stmt = select(func.count()).select_from(WishlistItem).where(WishlistItem.wishlist_id == wishlist_id)
    return int((await db.execute(stmt)).scalar_one())


async def list_products(db: AsyncSession, owner: CartOwner | None) -> List[Product]:
    """Active products on the owner's wishlist, most recently added first."""
    if owner is None:
        return []
    wishlist = await find_wishlist(db, owner)
    if wishlist is None:
        return []
    stmt = (
        select(Product)
        .join(WishlistItem, WishlistItem.product_id == Product.id)
        .where(
            WishlistItem.wishlist_id == wishlist.id,
            Product.status == ProductStatus.active,
            Product.deleted_at.is_(None),
        )
        .order_by(WishlistItem.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars())


async def toggle(
    db: AsyncSession, owner: CartOwner, product_id: uuid.UUID
) -> tuple[Literal["added", "removed"], int]:
    wishlist = await get_or_create_wishlist(db, owner)
    removed = await db.execute(
        delete(WishlistItem).where(
            WishlistItem.wishlist_id == wishlist.id, WishlistItem.product_id == product_id
        )
    )
    if removed.rowcount:
        action: Literal["added", "removed"] = "removed"
    else:
        product = await db.get(Product, product_id)
        if product is None or not product.is_available:
            raise ResourceNotFoundError("Product not found")
        # a concurrent toggle may have inserted it already
        await insert_in_savepoint(db, WishlistItem(wishlist_id=wishlist.id, product_id=product_id))
        action = "added"
    wishlist.updated_at = utcnow()
    await flush_async(db)
    return action, await _count(db, wishlist.id)


async def merge_guest_wishlist(db: AsyncSession, session_token: str, user_id: uuid.UUID) -> int:
    """Set union of the guest wishlist into the user's; the guest record is removed."""
    guest = await find_wishlist(db, CartOwner.guest(session_token))
    if guest is None:
        return 0

    target = await get_or_create_wishlist(db, CartOwner.authenticated(user_id))
    existing = set(
        (await db.execute(select(WishlistItem.product_id).where(WishlistItem.wishlist_id == target.id))).scalars()
    )
    guest_products = list(
        (await db.execute(select(WishlistItem.product_id).where(WishlistItem.wishlist_id == guest.id))).scalars()
    )

    added = 0
    for product_id in guest_products:
        if product_id in existing:
            continue
        if await insert_in_savepoint(db, WishlistItem(wishlist_id=target.id, product_id=product_id)):
            added += 1

    await db.execute(delete(WishlistItem).where(WishlistItem.wishlist_id == guest.id))
    await db.execute(delete(Wishlist).where(Wishlist.id == guest.id))
    await flush_async(db)
    logger.info("Guest wishlist merged", extra={"user_id": str(user_id), "items_added": added})
    return added
