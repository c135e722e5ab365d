import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from storefront.core.config import settings
from storefront.domain.enums import ShippingMethodId
from storefront.models.shipping import ShippingZone
from storefront.schemas.shipping import ShippingMethodIn, ShippingZoneUpdate
from storefront.services import shipping_service
from storefront.services.exceptions import DomainValidationError, ResourceNotFoundError

LOOKUP_URL = f"{settings.API_V1_STR}/shipping-zones/lookup"
ZONES_URL = f"{settings.API_V1_STR}/shipping-zones"

REMOTE_METHODS = [
    {"method_id": ShippingMethodId.standard, "label": "Standard Shipping", "price": 999, "free_threshold": 7500},
    {"method_id": ShippingMethodId.express, "label": "Express Shipping", "price": 1999},
]


@pytest.mark.asyncio
async def test_state_zone_beats_country_zone(async_db_session, domestic_zone, make_zone):
    remote = make_zone("US Remote", countries=["US"], states=["AK", "HI"], sort_order=5, methods=REMOTE_METHODS)

    quote = await shipping_service.resolve_quote(async_db_session, "us", "ak", subtotal=6000)
    assert quote.zone_id == remote.id
    standard = quote.method(ShippingMethodId.standard)
    assert standard.price == 999
    assert standard.base_price == 999

    quote = await shipping_service.resolve_quote(async_db_session, "US", "IL", subtotal=6000)
    assert quote.zone_id == domestic_zone.id
    assert quote.method(ShippingMethodId.standard).price == 0


@pytest.mark.asyncio
async def test_unknown_country_falls_back_to_default(async_db_session, domestic_zone, make_zone):
    make_zone("Canada", countries=["CA"], sort_order=20)

    quote = await shipping_service.resolve_quote(async_db_session, "FR")
    assert quote.zone_id == domestic_zone.id


@pytest.mark.asyncio
async def test_no_zone_means_no_shipping(async_db_session, make_zone):
    make_zone("Canada", countries=["CA"])
    assert await shipping_service.resolve_quote(async_db_session, "FR") is None


@pytest.mark.asyncio
async def test_inactive_zones_and_methods_are_ignored(async_db_session, domestic_zone, make_zone):
    make_zone("Retired Illinois", countries=["US"], states=["IL"], is_active=False)
    make_zone(
        "Express-less Ohio",
        countries=["US"],
        states=["OH"],
        methods=[
            {"method_id": ShippingMethodId.standard, "label": "Standard Shipping", "price": 599},
            {"method_id": ShippingMethodId.express, "label": "Express Shipping", "price": 999, "is_active": False},
        ],
    )

    quote = await shipping_service.resolve_quote(async_db_session, "US", "IL")
    assert quote.zone_id == domestic_zone.id

    quote = await shipping_service.resolve_quote(async_db_session, "US", "OH")
    assert [m.method_id for m in quote.methods] == [ShippingMethodId.standard]


@pytest.mark.asyncio
async def test_overlapping_zones_resolve_deterministically(async_db_session, make_zone):
    earlier = datetime.now(timezone.utc) - timedelta(days=2)
    first = make_zone("West A", countries=["US"], states=["CA"], sort_order=1, created_at=earlier)
    make_zone("West B", countries=["US"], states=["CA"], sort_order=1)
    preferred = make_zone("West Priority", countries=["US"], states=["CA"], sort_order=0)

    results = {(await shipping_service.resolve_quote(async_db_session, "US", "CA")).zone_id for _ in range(3)}
    assert results == {preferred.id}

    await shipping_service.update_zone(
        async_db_session, preferred.id, ShippingZoneUpdate(is_active=False)
    )
    quote = await shipping_service.resolve_quote(async_db_session, "US", "CA")
    assert quote.zone_id == first.id


@pytest.mark.asyncio
async def test_set_default_leaves_exactly_one(async_db_session, make_zone):
    make_zone("Legacy A", countries=["US"], is_default=True)
    make_zone("Legacy B", countries=["CA"], is_default=True)
    target = make_zone("International", countries=[])

    zone = await shipping_service.set_default_zone(async_db_session, target.id)
    await async_db_session.commit()

    assert zone.is_default is True
    defaults = (
        await async_db_session.execute(
            select(ShippingZone.id).where(ShippingZone.is_default.is_(True))
        )
    ).scalars().all()
    assert defaults == [target.id]


@pytest.mark.asyncio
async def test_set_default_rejects_inactive_or_missing_zone(async_db_session, make_zone):
    retired = make_zone("Retired", countries=["US"], is_active=False)
    with pytest.raises(DomainValidationError):
        await shipping_service.set_default_zone(async_db_session, retired.id)
    with pytest.raises(ResourceNotFoundError):
        await shipping_service.set_default_zone(async_db_session, uuid.uuid4())


@pytest.mark.asyncio
async def test_lookup_endpoint(client, domestic_zone):
    response = await client.get(LOOKUP_URL, params={"country": "US", "state": "IL", "subtotal": 6000})
    assert response.status_code == 200
    body = response.json()
    assert body["data"]["zone_name"] == "Domestic US"
    prices = {m["method_id"]: m["price"] for m in body["data"]["methods"]}
    assert prices == {"standard": 0, "express": 999}


@pytest.mark.asyncio
async def test_lookup_without_match_reports_message(client):
    response = await client.get(LOOKUP_URL, params={"country": "FR"})
    assert response.status_code == 200
    assert response.json()["data"] is None
    assert response.json()["message"]


@pytest.mark.asyncio
async def test_zone_admin_requires_scope(client, user_headers):
    assert (await client.get(ZONES_URL)).status_code == 401
    assert (await client.get(ZONES_URL, headers=user_headers)).status_code == 403


@pytest.mark.asyncio
async def test_admin_zone_lifecycle(client, admin_headers, async_db_session):
    payload = {
        "name": "Domestic US",
        "countries": ["us"],
        "is_default": True,
        "methods": [
            {"method_id": "standard", "label": "Standard Shipping", "price": 499, "free_threshold": 5000},
            {"method_id": "express", "label": "Express Shipping", "price": 999},
        ],
    }
    created = await client.post(ZONES_URL, json=payload, headers=admin_headers)
    assert created.status_code == 201
    body = created.json()
    assert body["countries"] == ["US"]
    assert body["is_default"] is True

    second = await client.post(
        ZONES_URL,
        json={
            "name": "Canada",
            "countries": ["CA"],
            "methods": [{"method_id": "standard", "label": "Standard Shipping", "price": 1299}],
        },
        headers=admin_headers,
    )
    assert second.status_code == 201
    canada_id = second.json()["id"]

    updated = await client.put(
        f"{ZONES_URL}/{canada_id}",
        json={"methods": [{"method_id": "express", "label": "Express Shipping", "price": 2499}]},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert [m["method_id"] for m in updated.json()["methods"]] == ["express"]

    promoted = await client.post(f"{ZONES_URL}/{canada_id}/default", headers=admin_headers)
    assert promoted.status_code == 200
    assert promoted.json()["is_default"] is True

    listing = await client.get(ZONES_URL, headers=admin_headers)
    defaults = [zone["name"] for zone in listing.json() if zone["is_default"]]
    assert defaults == ["Canada"]

    count = (await async_db_session.execute(select(func.count(ShippingZone.id)))).scalar_one()
    assert count == 2


@pytest.mark.asyncio
async def test_create_zone_validation(client, admin_headers):
    duplicate_methods = {
        "name": "Dupes",
        "countries": ["US"],
        "methods": [
            {"method_id": "standard", "label": "A", "price": 1},
            {"method_id": "standard", "label": "B", "price": 2},
        ],
    }
    response = await client.post(ZONES_URL, json=duplicate_methods, headers=admin_headers)
    assert response.status_code == 422

    states_only = {
        "name": "States only",
        "states": ["AK"],
        "methods": [{"method_id": "standard", "label": "Standard", "price": 1}],
    }
    response = await client.post(ZONES_URL, json=states_only, headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.parametrize(
    "body",
    [
        {"countries": None},
        {"states": None},
        {"name": None},
        {"is_active": None},
        {"sort_order": None},
        {"methods": None},
    ],
)
def test_zone_update_rejects_explicit_null(body):
    with pytest.raises(ValidationError):
        ShippingZoneUpdate(**body)


def test_zones_cannot_offer_digital_delivery():
    with pytest.raises(ValidationError):
        ShippingMethodIn(method_id="digital", label="Digital", price=0)


@pytest.mark.asyncio
async def test_zone_update_over_http_keeps_row_intact_on_bad_input(client, admin_headers, make_zone):
    zone = make_zone("Canada", countries=["CA"])
    url = f"{ZONES_URL}/{zone.id}"
    duplicate_methods = [
        {"method_id": "standard", "label": "A", "price": 1},
        {"method_id": "standard", "label": "B", "price": 2},
    ]

    for body in ({"countries": None}, {"name": None}, {"methods": duplicate_methods}):
        response = await client.put(url, json=body, headers=admin_headers)
        assert response.status_code == 422

    listing = await client.get(ZONES_URL, headers=admin_headers)
    assert listing.status_code == 200
    (stored,) = listing.json()
    assert stored["name"] == "Canada"
    assert stored["countries"] == ["CA"]
    assert len(stored["methods"]) == 2
