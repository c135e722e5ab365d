from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import get_current_actor, require_admin
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.domain.owner import Actor
from storefront.schemas.coupon import CouponCreate, CouponRead, CouponValidateRequest, ValidatedCouponRead
from storefront.services import coupon_service

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/validate", response_model=ValidatedCouponRead)
async def validate_coupon(
    payload: CouponValidateRequest,
    db: AsyncSession = Depends(get_async_db),
    actor: Actor = Depends(get_current_actor),
):
    """Preview a discount; usage is only counted when an order is placed."""
    return await coupon_service.validate(db, payload.code, payload.subtotal, actor.user_id)


@router.get("", response_model=List[CouponRead])
async def list_coupons(
    limit: int = Query(default=100, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    _: Actor = Depends(require_admin),
):
    return await coupon_service.list_coupons(db, limit=limit, offset=offset)


@router.post("", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    payload: CouponCreate,
    db: AsyncSession = Depends(get_async_db),
    _: Actor = Depends(require_admin),
):
    try:
        coupon = await coupon_service.create_coupon(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return coupon
