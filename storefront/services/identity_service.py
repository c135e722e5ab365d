"""Who is shopping, and folding a guest session into an account at login."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.domain.owner import Actor, CartOwner, is_well_formed_token, new_session_token, resolve_owner
from storefront.services import cart_service, wishlist_service


@dataclass(frozen=True, slots=True)
class MergeResult:
    cart_lines: int = 0
    wishlist_items: int = 0


def resolve(actor: Actor, session_token: str | None) -> CartOwner | None:
    return resolve_owner(actor, session_token)


def issue_guest_token() -> str:
    return new_session_token(settings.GUEST_TOKEN_BYTES)


def resolve_or_issue(actor: Actor, session_token: str | None) -> tuple[CartOwner, str | None]:
    """Owner for a mutation; anonymous callers without a usable token get a new one.

    The second element is the guest token to hand back to the client, or None
    for authenticated callers.
    """
    owner = resolve_owner(actor, session_token)
    if owner is None:
        token = issue_guest_token()
        return CartOwner.guest(token), token
    return owner, owner.session_token


async def merge_guest_into_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    cart_token: str | None = None,
    wishlist_token: str | None = None,
) -> MergeResult:
    """Idempotent: without a guest record for the token nothing happens."""
    cart_lines = 0
    wishlist_items = 0
    if is_well_formed_token(cart_token):
        cart_lines = await cart_service.merge_guest_cart(db, cart_token, user_id)
    if is_well_formed_token(wishlist_token):
        wishlist_items = await wishlist_service.merge_guest_wishlist(db, wishlist_token, user_id)
    return MergeResult(cart_lines=cart_lines, wishlist_items=wishlist_items)
