from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import Shopper, get_shopper, set_guest_cookie
from storefront.core.config import settings
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.schemas.wishlist import WishlistProductRead, WishlistToggle, WishlistToggleResult
from storefront.services import identity_service, wishlist_service

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


@router.get("", response_model=List[WishlistProductRead])
async def read_wishlist(
    db: AsyncSession = Depends(get_async_db),
    shopper: Shopper = Depends(get_shopper),
):
    owner = identity_service.resolve(shopper.actor, shopper.wishlist_token)
    return await wishlist_service.list_products(db, owner)


@router.post("", response_model=WishlistToggleResult)
async def toggle_wishlist_item(
    payload: WishlistToggle,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
    shopper: Shopper = Depends(get_shopper),
):
    owner, token = identity_service.resolve_or_issue(shopper.actor, shopper.wishlist_token)
    try:
        action, count = await wishlist_service.toggle(db, owner, payload.product_id)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    if token:
        set_guest_cookie(response, settings.WISHLIST_SESSION_COOKIE, token)
    return WishlistToggleResult(action=action, count=count)
