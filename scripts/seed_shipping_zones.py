"""Seed the default shipping zones.

Run: python scripts/seed_shipping_zones.py [--force]
Existing zones are kept unless --force is given, which replaces them.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH when running as a script.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import delete, func, select

from storefront.core.config import settings
from storefront.db.session_async import AsyncSessionLocal
from storefront.domain.enums import ShippingMethodId
from storefront.models.shipping import ShippingMethod, ShippingZone
from storefront.schemas.shipping import ShippingMethodIn, ShippingZoneCreate
from storefront.services import shipping_service


def _method(method_id: ShippingMethodId, label: str, price: int, days: str, *, free_threshold: int | None = None, description: str = "") -> ShippingMethodIn:
    return ShippingMethodIn(
        method_id=method_id,
        label=label,
        description=description or f"Delivered in {days}",
        price=price,
        free_threshold=free_threshold,
        estimated_days=days,
    )


DEFAULT_ZONES: tuple[ShippingZoneCreate, ...] = (
    ShippingZoneCreate(
        name="Domestic US",
        countries=["US"],
        states=[],
        is_default=True,
        sort_order=10,
        methods=[
            _method(ShippingMethodId.standard, "Standard Shipping", 499, "5-7 business days", free_threshold=5000),
            _method(ShippingMethodId.express, "Express Shipping", 999, "2-3 business days"),
            _method(ShippingMethodId.overnight, "Overnight Shipping", 1999, "Next business day", description="Next business day delivery"),
            _method(ShippingMethodId.pickup, "Store Pickup", 0, "Same day", description="Pick up at our location"),
        ],
    ),
    ShippingZoneCreate(
        name="US Remote (AK, HI)",
        countries=["US"],
        states=["AK", "HI"],
        sort_order=5,
        methods=[
            _method(ShippingMethodId.standard, "Standard Shipping", 999, "7-14 business days", free_threshold=7500),
            _method(ShippingMethodId.express, "Express Shipping", 1999, "3-5 business days"),
        ],
    ),
    ShippingZoneCreate(
        name="Canada",
        countries=["CA"],
        states=[],
        sort_order=20,
        methods=[
            _method(ShippingMethodId.standard, "Standard International", 1499, "10-15 business days", free_threshold=10000),
            _method(ShippingMethodId.express, "Express International", 2999, "5-7 business days"),
        ],
    ),
    ShippingZoneCreate(
        name="International",
        countries=[],
        states=[],
        sort_order=100,
        methods=[
            _method(ShippingMethodId.standard, "International Standard", 2499, "15-25 business days", free_threshold=15000),
            _method(ShippingMethodId.express, "International Express", 4999, "7-12 business days"),
        ],
    ),
)


async def seed_shipping_zones(force: bool = False) -> int:
    """Create the default zones; returns how many were created."""
    logger = logging.getLogger("seed_shipping_zones")
    logger.info("Seeding shipping zones into %s", settings.ASYNC_DATABASE_URL)

    async with AsyncSessionLocal() as session:
        existing = (await session.execute(select(func.count(ShippingZone.id)))).scalar_one()
        if existing and not force:
            logger.info("%s shipping zone(s) already exist; use --force to recreate", existing)
            return 0
        if force:
            await session.execute(delete(ShippingMethod))
            await session.execute(delete(ShippingZone))

        for payload in DEFAULT_ZONES:
            zone = await shipping_service.create_zone(session, payload)
            logger.info(
                "Created zone %s (%s) with %s methods%s",
                zone.name,
                ", ".join(zone.countries) or "fallback",
                len(zone.methods),
                " [default]" if zone.is_default else "",
            )
        await session.commit()

    return len(DEFAULT_ZONES)


async def main() -> None:
    await seed_shipping_zones(force="--force" in sys.argv[1:])


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(main())
