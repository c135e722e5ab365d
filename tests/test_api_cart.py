import pytest

from storefront.core.config import settings

CART_URL = f"{settings.API_V1_STR}/cart"
WISHLIST_URL = f"{settings.API_V1_STR}/wishlist"


@pytest.mark.asyncio
async def test_anonymous_cart_is_empty_without_token(client):
    response = await client.get(CART_URL)
    assert response.status_code == 200
    body = response.json()
    assert body["items"] == []
    assert body["session_token"] is None
    assert settings.CART_SESSION_COOKIE not in response.cookies


@pytest.mark.asyncio
async def test_guest_cart_issues_cookie_and_token(client, make_product):
    product = make_product(base_price=1500, sale_price=1200)

    response = await client.post(CART_URL, json={"product_id": str(product.id), "quantity": 2})
    assert response.status_code == 200
    body = response.json()
    token = body["session_token"]
    assert token
    assert response.cookies.get(settings.CART_SESSION_COOKIE) == token
    assert body["subtotal"] == 2400
    line = body["items"][0]
    assert line["price"] == 1200
    assert line["original_price"] == 1500

    client.cookies.clear()
    by_header = await client.get(CART_URL, headers={settings.CART_SESSION_HEADER: token})
    assert by_header.json()["item_count"] == 2


@pytest.mark.asyncio
async def test_cart_update_and_delete_over_http(client, make_product):
    product = make_product(stock=3)
    added = await client.post(CART_URL, json={"product_id": str(product.id)})
    token = added.json()["session_token"]
    headers = {settings.CART_SESSION_HEADER: token}
    item_id = added.json()["items"][0]["id"]

    too_many = await client.put(CART_URL, json={"item_id": item_id, "quantity": 4}, headers=headers)
    assert too_many.status_code == 409
    assert too_many.json()["code"] == "insufficient_stock"

    updated = await client.put(CART_URL, json={"item_id": item_id, "quantity": 3}, headers=headers)
    assert updated.json()["items"][0]["quantity"] == 3

    assert (await client.delete(CART_URL, headers=headers)).status_code == 422

    cleared = await client.delete(CART_URL, params={"clear": "true"}, headers=headers)
    assert cleared.json()["items"] == []


@pytest.mark.asyncio
async def test_unknown_product_is_not_found(client):
    response = await client.post(CART_URL, json={"product_id": "00000000-0000-0000-0000-000000000000"})
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_login_merges_guest_cart_and_clears_cookie(client, make_product, user_headers):
    shared = make_product(name="Shared")
    guest_only = make_product(name="Guest Only")

    await client.post(CART_URL, json={"product_id": str(shared.id)}, headers=user_headers)

    guest = await client.post(CART_URL, json={"product_id": str(shared.id), "quantity": 4})
    guest_token = guest.json()["session_token"]
    await client.post(CART_URL, json={"product_id": str(guest_only.id)})
    assert client.cookies.get(settings.CART_SESSION_COOKIE) == guest_token

    merged = await client.get(CART_URL, headers=user_headers)
    assert merged.status_code == 200
    quantities = {line["name"]: line["quantity"] for line in merged.json()["items"]}
    assert quantities == {"Shared": 1, "Guest Only": 1}
    assert merged.json()["session_token"] is None
    assert settings.CART_SESSION_COOKIE not in client.cookies

    leftover = await client.get(CART_URL, headers={settings.CART_SESSION_HEADER: guest_token})
    assert leftover.json()["items"] == []


@pytest.mark.asyncio
async def test_wishlist_toggle_over_http(client, make_product):
    mug = make_product(name="Mug")

    added = await client.post(WISHLIST_URL, json={"product_id": str(mug.id)})
    assert added.status_code == 200
    assert added.json() == {"action": "added", "count": 1}
    assert client.cookies.get(settings.WISHLIST_SESSION_COOKIE)

    listing = await client.get(WISHLIST_URL)
    assert [p["name"] for p in listing.json()] == ["Mug"]

    removed = await client.post(WISHLIST_URL, json={"product_id": str(mug.id)})
    assert removed.json() == {"action": "removed", "count": 0}


@pytest.mark.asyncio
async def test_wishlist_merges_on_login(client, make_product, user_headers):
    mug = make_product(name="Mug")
    lamp = make_product(name="Lamp")

    await client.post(WISHLIST_URL, json={"product_id": str(mug.id)})
    await client.post(WISHLIST_URL, json={"product_id": str(lamp.id)}, headers=user_headers)

    listing = await client.get(WISHLIST_URL, headers=user_headers)
    assert {p["name"] for p in listing.json()} == {"Mug", "Lamp"}
    assert settings.WISHLIST_SESSION_COOKIE not in client.cookies
