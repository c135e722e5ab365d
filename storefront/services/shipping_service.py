from __future__ import annotations

import uuid
from typing import List

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.logging import get_logger
from storefront.db.operations import flush_async
from storefront.domain.shipping import MethodRule, ZoneQuote, ZoneRule, match_zone, quote_zone
from storefront.models.shipping import ShippingMethod, ShippingZone
from storefront.schemas.shipping import ShippingMethodIn, ShippingZoneCreate, ShippingZoneUpdate
from storefront.services.exceptions import DomainValidationError, ResourceNotFoundError

logger = get_logger(__name__)


def _to_rule(zone: ShippingZone) -> ZoneRule:
    return ZoneRule(
        id=zone.id,
        name=zone.name,
        countries=frozenset(zone.countries or ()),
        states=frozenset(zone.states or ()),
        methods=tuple(
            MethodRule(
                method_id=m.method_id,
                label=m.label,
                price=m.price,
                free_threshold=m.free_threshold,
                description=m.description or "",
                estimated_days=m.estimated_days or "",
                is_active=m.is_active,
            )
            for m in zone.methods
        ),
        is_default=zone.is_default,
        is_active=zone.is_active,
        sort_order=zone.sort_order,
        created_at=zone.created_at,
    )


def _build_methods(methods: list[ShippingMethodIn]) -> list[ShippingMethod]:
    return [
        ShippingMethod(
            method_id=m.method_id,
            label=m.label,
            description=m.description,
            price=m.price,
            free_threshold=m.free_threshold,
            estimated_days=m.estimated_days,
            is_active=m.is_active,
            position=position,
        )
        for position, m in enumerate(methods)
    ]


async def _active_rules(db: AsyncSession) -> list[ZoneRule]:
    stmt = (
        select(ShippingZone)
        .options(selectinload(ShippingZone.methods))
        .where(ShippingZone.is_active.is_(True))
    )
    return [_to_rule(zone) for zone in (await db.execute(stmt)).scalars()]


async def resolve_quote(
    db: AsyncSession,
    country: str,
    state: str | None = None,
    subtotal: int | None = None,
) -> ZoneQuote | None:
    """Quote for the zone serving the address; None when no zone applies."""
    zone = match_zone(await _active_rules(db), country, state)
    if zone is None:
        return None
    return quote_zone(zone, subtotal)


async def list_zones(db: AsyncSession) -> List[ShippingZone]:
    stmt = (
        select(ShippingZone)
        .options(selectinload(ShippingZone.methods))
        .order_by(ShippingZone.sort_order, ShippingZone.created_at, ShippingZone.id)
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(stmt)).scalars())


async def get_zone(db: AsyncSession, zone_id: uuid.UUID) -> ShippingZone:
    zone = await db.get(
        ShippingZone, zone_id, options=[selectinload(ShippingZone.methods)], populate_existing=True
    )
    if zone is None:
        raise ResourceNotFoundError("Shipping zone not found")
    return zone


async def create_zone(db: AsyncSession, payload: ShippingZoneCreate) -> ShippingZone:
    if payload.states and not payload.countries:
        raise DomainValidationError("States require at least one country")
    zone = ShippingZone(
        name=payload.name.strip(),
        countries=payload.countries,
        states=payload.states,
        is_active=payload.is_active,
        sort_order=payload.sort_order,
        methods=_build_methods(payload.methods),
    )
    db.add(zone)
    await flush_async(db)
    if payload.is_default:
        await set_default_zone(db, zone.id)
    return await get_zone(db, zone.id)


async def update_zone(db: AsyncSession, zone_id: uuid.UUID, payload: ShippingZoneUpdate) -> ShippingZone:
    zone = await get_zone(db, zone_id)
    data = payload.model_dump(exclude_unset=True, exclude={"methods"})
    for field, value in data.items():
        setattr(zone, field, value)
    if zone.states and not zone.countries:
        raise DomainValidationError("States require at least one country")
    if payload.methods is not None:
        # old rows must be gone before the (zone_id, method_id) rows come back
        zone.methods.clear()
        await flush_async(db)
        zone.methods.extend(_build_methods(payload.methods))
    await flush_async(db)
    return await get_zone(db, zone.id)


async def set_default_zone(db: AsyncSession, zone_id: uuid.UUID) -> ShippingZone:
    """Make ``zone_id`` the only default zone in a single statement.

    Also repairs a table where several zones were flagged default.
    """
    zone = await get_zone(db, zone_id)
    if not zone.is_active:
        raise DomainValidationError("Inactive zones cannot be the default zone")
    await db.execute(
        update(ShippingZone)
        .values(is_default=case((ShippingZone.id == zone_id, True), else_=False))
        .execution_options(synchronize_session=False)
    )
    zone = await get_zone(db, zone_id)
    logger.info("Default shipping zone changed", extra={"zone_id": str(zone_id), "zone_name": zone.name})
    return zone
