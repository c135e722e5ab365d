import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select, update

from storefront.core.config import settings
from storefront.db.session_async import AsyncSessionLocal
from storefront.domain.owner import ANONYMOUS, Actor, CartOwner, new_session_token
from storefront.models.cart import Cart, CartItem
from storefront.models.wishlist import Wishlist, WishlistItem
from storefront.services import cart_service, identity_service, wishlist_service


def _token() -> str:
    return new_session_token(settings.GUEST_TOKEN_BYTES)


def test_resolve_or_issue_hands_out_token_only_to_anonymous():
    owner, token = identity_service.resolve_or_issue(ANONYMOUS, None)
    assert owner.is_guest
    assert token == owner.session_token

    existing = _token()
    owner, token = identity_service.resolve_or_issue(ANONYMOUS, existing)
    assert owner.session_token == existing
    assert token == existing

    user = Actor(user_id=uuid.uuid4())
    owner, token = identity_service.resolve_or_issue(user, existing)
    assert owner.user_id == user.user_id
    assert token is None


@pytest.mark.asyncio
async def test_merge_moves_guest_lines_and_user_lines_win(async_db_session, make_product):
    shared = make_product(name="Shared", stock=20)
    guest_only = make_product(name="Guest Only", stock=20)
    user_id = uuid.uuid4()
    token = _token()
    guest = CartOwner.guest(token)
    user = CartOwner.authenticated(user_id)

    await cart_service.add_item(async_db_session, guest, shared.id, quantity=5)
    await cart_service.add_item(async_db_session, guest, guest_only.id, quantity=2)
    await cart_service.add_item(async_db_session, user, shared.id, quantity=1)

    result = await identity_service.merge_guest_into_user(async_db_session, user_id, cart_token=token)
    await async_db_session.commit()

    assert result.cart_lines == 1
    view = await cart_service.get_cart(async_db_session, user)
    quantities = {line.product_id: line.quantity for line in view.items}
    assert quantities == {shared.id: 1, guest_only.id: 2}
    assert await cart_service.find_cart(async_db_session, guest) is None


@pytest.mark.asyncio
async def test_merge_clamps_to_available_stock(async_db_session, make_product, db_session):
    scarce = make_product(name="Scarce", stock=10)
    user_id = uuid.uuid4()
    token = _token()
    guest = CartOwner.guest(token)
    await cart_service.add_item(async_db_session, guest, scarce.id, quantity=8)
    await async_db_session.commit()

    scarce.stock_quantity = 3
    db_session.commit()

    await identity_service.merge_guest_into_user(async_db_session, user_id, cart_token=token)
    view = await cart_service.get_cart(async_db_session, CartOwner.authenticated(user_id))
    assert [line.quantity for line in view.items] == [3]


@pytest.mark.asyncio
async def test_merge_is_idempotent(async_db_session, make_product):
    product = make_product()
    user_id = uuid.uuid4()
    token = _token()
    await cart_service.add_item(async_db_session, CartOwner.guest(token), product.id, quantity=2)

    first = await identity_service.merge_guest_into_user(async_db_session, user_id, cart_token=token)
    second = await identity_service.merge_guest_into_user(async_db_session, user_id, cart_token=token)

    assert first.cart_lines == 1
    assert second.cart_lines == 0
    view = await cart_service.get_cart(async_db_session, CartOwner.authenticated(user_id))
    assert [line.quantity for line in view.items] == [2]


@pytest.mark.asyncio
async def test_concurrent_merges_apply_once(make_product):
    product = make_product(stock=20)
    user_id = uuid.uuid4()
    token = _token()
    async with AsyncSessionLocal() as session:
        await cart_service.add_item(session, CartOwner.guest(token), product.id, quantity=3)
        await session.commit()

    async def merge():
        async with AsyncSessionLocal() as session:
            result = await identity_service.merge_guest_into_user(session, user_id, cart_token=token)
            await session.commit()
            return result.cart_lines

    moved = await asyncio.gather(merge(), merge())
    assert sorted(moved) == [0, 1]

    async with AsyncSessionLocal() as session:
        carts = (await session.execute(select(func.count(Cart.id)))).scalar_one()
        quantities = list((await session.execute(select(CartItem.quantity))).scalars())
    assert carts == 1
    assert quantities == [3]


@pytest.mark.asyncio
async def test_wishlist_merge_is_a_union(async_db_session, make_product):
    mug = make_product(name="Mug")
    lamp = make_product(name="Lamp")
    rug = make_product(name="Rug")
    user_id = uuid.uuid4()
    token = _token()
    guest = CartOwner.guest(token)
    user = CartOwner.authenticated(user_id)

    await wishlist_service.toggle(async_db_session, guest, mug.id)
    await wishlist_service.toggle(async_db_session, guest, lamp.id)
    await wishlist_service.toggle(async_db_session, user, lamp.id)
    await wishlist_service.toggle(async_db_session, user, rug.id)

    result = await identity_service.merge_guest_into_user(async_db_session, user_id, wishlist_token=token)

    assert result.wishlist_items == 1
    products = await wishlist_service.list_products(async_db_session, user)
    assert {p.id for p in products} == {mug.id, lamp.id, rug.id}
    remaining = (await async_db_session.execute(select(func.count(Wishlist.id)))).scalar_one()
    assert remaining == 1


@pytest.mark.asyncio
async def test_malformed_tokens_are_ignored(async_db_session):
    result = await identity_service.merge_guest_into_user(
        async_db_session, uuid.uuid4(), cart_token="short", wishlist_token="x" * 300
    )
    assert result == identity_service.MergeResult()


@pytest.mark.asyncio
async def test_expired_guest_records_are_not_merged(async_db_session, make_product):
    tote = make_product(name="Tote")
    user_id = uuid.uuid4()
    token = _token()
    guest = CartOwner.guest(token)

    await cart_service.add_item(async_db_session, guest, tote.id, quantity=2)
    await wishlist_service.toggle(async_db_session, guest, tote.id)
    stale = datetime.now(timezone.utc) - timedelta(days=settings.GUEST_SESSION_MAX_AGE_DAYS + 30)
    await async_db_session.execute(update(Cart).where(Cart.session_token == token).values(updated_at=stale))
    await async_db_session.execute(update(Wishlist).where(Wishlist.session_token == token).values(updated_at=stale))
    await async_db_session.commit()

    result = await identity_service.merge_guest_into_user(
        async_db_session, user_id, cart_token=token, wishlist_token=token
    )
    await async_db_session.commit()

    assert result.cart_lines == 0
    assert result.wishlist_items == 0
    view = await cart_service.get_cart(async_db_session, CartOwner.authenticated(user_id))
    assert view.items == []
    assert await wishlist_service.list_products(async_db_session, CartOwner.authenticated(user_id)) == []
    assert (await async_db_session.execute(select(func.count(CartItem.id)))).scalar_one() == 0
    assert (await async_db_session.execute(select(func.count(WishlistItem.id)))).scalar_one() == 0
