from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import require_admin
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.domain.owner import Actor
from storefront.schemas.shipping import (
    ShippingZoneCreate,
    ShippingZoneRead,
    ShippingZoneUpdate,
    ZoneLookupRead,
    ZoneQuoteRead,
)
from storefront.services import shipping_service

router = APIRouter(prefix="/shipping-zones", tags=["shipping"])


@router.get("/lookup", response_model=ZoneLookupRead)
async def lookup_zone(
    country: str = Query(..., min_length=2, max_length=2),
    state: Optional[str] = Query(default=None, max_length=120),
    subtotal: Optional[int] = Query(default=None, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    quote = await shipping_service.resolve_quote(db, country, state, subtotal)
    if quote is None:
        return ZoneLookupRead(data=None, message="Shipping is not available for this address")
    return ZoneLookupRead(data=ZoneQuoteRead.model_validate(quote))


@router.get("", response_model=List[ShippingZoneRead])
async def list_zones(
    db: AsyncSession = Depends(get_async_db),
    _: Actor = Depends(require_admin),
):
    return await shipping_service.list_zones(db)


@router.post("", response_model=ShippingZoneRead, status_code=status.HTTP_201_CREATED)
async def create_zone(
    payload: ShippingZoneCreate,
    db: AsyncSession = Depends(get_async_db),
    _: Actor = Depends(require_admin),
):
    try:
        zone = await shipping_service.create_zone(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return zone


@router.put("/{zone_id}", response_model=ShippingZoneRead)
async def update_zone(
    zone_id: UUID,
    payload: ShippingZoneUpdate,
    db: AsyncSession = Depends(get_async_db),
    _: Actor = Depends(require_admin),
):
    try:
        zone = await shipping_service.update_zone(db, zone_id, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return zone


@router.post("/{zone_id}/default", response_model=ShippingZoneRead)
async def make_default_zone(
    zone_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    _: Actor = Depends(require_admin),
):
    try:
        zone = await shipping_service.set_default_zone(db, zone_id)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return zone
