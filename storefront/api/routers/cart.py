from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import Shopper, get_shopper, set_guest_cookie
from storefront.core.config import settings
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.domain.owner import CartOwner
from storefront.schemas.cart import CartItemCreate, CartItemUpdate, CartRead
from storefront.services import cart_service, identity_service
from storefront.services.cart_service import CartView
from storefront.services.exceptions import DomainValidationError, ResourceNotFoundError

router = APIRouter(prefix="/cart", tags=["cart"])


def _respond(view: CartView, owner: CartOwner | None, response: Response) -> CartRead:
    token = owner.session_token if owner is not None else None
    if token:
        set_guest_cookie(response, settings.CART_SESSION_COOKIE, token)
    return CartRead.model_validate(view, from_attributes=True).model_copy(update={"session_token": token})


@router.get("", response_model=CartRead)
async def read_cart(
    response: Response,
    db: AsyncSession = Depends(get_async_db),
    shopper: Shopper = Depends(get_shopper),
):
    owner = identity_service.resolve(shopper.actor, shopper.cart_token)
    try:
        view = await cart_service.get_cart(db, owner)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return _respond(view, owner, response)


@router.post("", response_model=CartRead)
async def add_item(
    payload: CartItemCreate,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
    shopper: Shopper = Depends(get_shopper),
):
    owner, _ = identity_service.resolve_or_issue(shopper.actor, payload.session_token or shopper.cart_token)
    try:
        view = await cart_service.add_item(
            db, owner, payload.product_id, variant_id=payload.variant_id, quantity=payload.quantity
        )
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return _respond(view, owner, response)


@router.put("", response_model=CartRead)
async def update_item(
    payload: CartItemUpdate,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
    shopper: Shopper = Depends(get_shopper),
):
    owner = identity_service.resolve(shopper.actor, payload.session_token or shopper.cart_token)
    if owner is None:
        raise ResourceNotFoundError("Cart item not found")
    try:
        view = await cart_service.update_quantity(db, owner, payload.item_id, payload.quantity)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return _respond(view, owner, response)


@router.delete("", response_model=CartRead)
async def delete_items(
    response: Response,
    item_id: Optional[UUID] = Query(default=None),
    clear: bool = Query(default=False, description="Remove every line"),
    db: AsyncSession = Depends(get_async_db),
    shopper: Shopper = Depends(get_shopper),
):
    if not clear and item_id is None:
        raise DomainValidationError("item_id or clear=true is required")
    owner = identity_service.resolve(shopper.actor, shopper.cart_token)
    try:
        if clear:
            view = await cart_service.clear(db, owner)
        else:
            view = await cart_service.remove_item(db, owner, item_id)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return _respond(view, owner, response)
