import uuid
from datetime import datetime, timedelta, timezone

import pytest

from storefront.core.config import settings
from storefront.domain.enums import DiscountType
from storefront.services import coupon_service
from storefront.services.exceptions import CouponRejectedError

VALIDATE_URL = f"{settings.API_V1_STR}/coupons/validate"
COUPONS_URL = f"{settings.API_V1_STR}/coupons"


@pytest.mark.asyncio
async def test_validate_is_case_insensitive_and_does_not_consume(async_db_session, make_coupon):
    coupon = make_coupon("SAVE10")

    result = await coupon_service.validate(async_db_session, "  save10 ", 4000)
    assert result.code == "SAVE10"
    assert result.discount_amount == 400

    refreshed = await coupon_service.get_by_code(async_db_session, "SAVE10")
    assert refreshed.id == coupon.id
    assert refreshed.usage_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "reason"),
    [
        ({"is_active": False}, "inactive"),
        ({"start_date": datetime.now(timezone.utc) + timedelta(days=1)}, "not_yet_active"),
        ({"end_date": datetime.now(timezone.utc) - timedelta(hours=1)}, "expired"),
        ({"usage_limit": 3, "usage_count": 3}, "usage_limit_reached"),
        ({"min_purchase": 5000}, "below_minimum_purchase"),
    ],
)
async def test_validate_rejections(async_db_session, make_coupon, overrides, reason):
    make_coupon("SAVE10", **overrides)
    with pytest.raises(CouponRejectedError) as exc_info:
        await coupon_service.validate(async_db_session, "SAVE10", 4000)
    assert exc_info.value.reason == reason


@pytest.mark.asyncio
async def test_unknown_code_is_rejected(async_db_session):
    with pytest.raises(CouponRejectedError) as exc_info:
        await coupon_service.validate(async_db_session, "NOPE", 4000)
    assert exc_info.value.reason == "not_found"


@pytest.mark.asyncio
async def test_fixed_discount_is_capped_at_amount(async_db_session, make_coupon):
    make_coupon("FIVEOFF", discount_type=DiscountType.fixed, discount_value=500)
    result = await coupon_service.validate(async_db_session, "FIVEOFF", 300)
    assert result.discount_amount == 300


@pytest.mark.asyncio
async def test_consume_respects_global_limit(async_db_session, make_coupon):
    coupon = make_coupon("ONCE", usage_limit=1)

    await coupon_service.consume(async_db_session, coupon.id)
    with pytest.raises(CouponRejectedError) as exc_info:
        await coupon_service.consume(async_db_session, coupon.id)
    assert exc_info.value.reason == "usage_limit_reached"

    refreshed = await coupon_service.get_by_code(async_db_session, "ONCE")
    assert refreshed.usage_count == 1


@pytest.mark.asyncio
async def test_validate_endpoint(client, make_coupon):
    make_coupon("SAVE10", max_discount=250)

    response = await client.post(VALIDATE_URL, json={"code": "save10", "subtotal": 4000})
    assert response.status_code == 200
    assert response.json()["discount_amount"] == 250

    response = await client.post(VALIDATE_URL, json={"code": "missing", "subtotal": 4000})
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "coupon_rejected"
    assert body["reason"] == "not_found"


@pytest.mark.asyncio
async def test_admin_creates_coupons(client, admin_headers, user_headers):
    payload = {"code": "spring25", "discount_type": "percentage", "discount_value": 25, "min_purchase": 2000}

    assert (await client.post(COUPONS_URL, json=payload, headers=user_headers)).status_code == 403

    created = await client.post(COUPONS_URL, json=payload, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["code"] == "SPRING25"
    assert created.json()["usage_count"] == 0

    duplicate = await client.post(COUPONS_URL, json=payload, headers=admin_headers)
    assert duplicate.status_code == 409

    too_generous = {**payload, "code": "HUGE", "discount_value": 150}
    assert (await client.post(COUPONS_URL, json=too_generous, headers=admin_headers)).status_code == 422

    listing = await client.get(COUPONS_URL, headers=admin_headers)
    assert [c["code"] for c in listing.json()] == ["SPRING25"]


@pytest.mark.asyncio
async def test_per_user_limit_counts_live_orders(async_db_session, make_coupon):
    coupon = make_coupon("SAVE10")
    user_id = uuid.uuid4()
    assert await coupon_service.user_usage_count(async_db_session, coupon.id, user_id) == 0
    _, error = await coupon_service.check(async_db_session, "SAVE10", 4000, user_id)
    assert error is None
