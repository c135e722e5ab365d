from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.operations import insert_in_savepoint
from storefront.domain.coupons import (
    COUPON_ERROR_MESSAGES,
    CouponError,
    CouponTerms,
    ValidatedCoupon,
    calculate_discount,
    check_coupon,
    normalize_code,
)
from storefront.domain.enums import OrderStatus, PaymentStatus
from storefront.models.coupon import Coupon
from storefront.models.order import Order
from storefront.schemas.coupon import CouponCreate
from storefront.services.exceptions import ConflictError, CouponRejectedError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_terms(coupon: Coupon) -> CouponTerms:
    return CouponTerms(
        id=coupon.id,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        min_purchase=coupon.min_purchase or 0,
        max_discount=coupon.max_discount,
        start_date=coupon.start_date,
        end_date=coupon.end_date,
        usage_limit=coupon.usage_limit,
        usage_count=coupon.usage_count or 0,
        user_limit=coupon.user_limit,
        is_active=coupon.is_active,
        description=coupon.description,
    )


def rejection(error: CouponError) -> CouponRejectedError:
    return CouponRejectedError(COUPON_ERROR_MESSAGES[error], reason=error.value)


async def get_by_code(db: AsyncSession, code: str) -> Coupon | None:
    normalized = normalize_code(code)
    if not normalized:
        return None
    result = await db.execute(
        select(Coupon).where(Coupon.code == normalized).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def user_usage_count(db: AsyncSession, coupon_id: uuid.UUID, user_id: uuid.UUID) -> int:
    """Orders by ``user_id`` that used the coupon; failed, refunded and cancelled orders give the use back."""
    stmt = (
        select(func.count())
        .select_from(Order)
        .where(
            Order.coupon_id == coupon_id,
            Order.user_id == user_id,
            Order.payment_status.in_([PaymentStatus.pending, PaymentStatus.paid]),
            Order.status != OrderStatus.cancelled,
        )
    )
    return int((await db.execute(stmt)).scalar_one())


async def check(
    db: AsyncSession,
    code: str,
    purchase_amount: int,
    user_id: uuid.UUID | None = None,
    *,
    now: datetime | None = None,
) -> tuple[Coupon | None, CouponError | None]:
    coupon = await get_by_code(db, code)
    terms = to_terms(coupon) if coupon is not None else None
    usage = None
    if coupon is not None and user_id is not None and coupon.user_limit:
        usage = await user_usage_count(db, coupon.id, user_id)
    error = check_coupon(terms, purchase_amount, now=now or _utcnow(), user_usage_count=usage)
    return coupon, error


async def validate(
    db: AsyncSession,
    code: str,
    purchase_amount: int,
    user_id: uuid.UUID | None = None,
    *,
    now: datetime | None = None,
) -> ValidatedCoupon:
    """Validate without consuming usage; raises ``CouponRejectedError`` on the first failed check."""
    coupon, error = await check(db, code, purchase_amount, user_id, now=now)
    if error is not None:
        raise rejection(error)
    terms = to_terms(coupon)
    return ValidatedCoupon(
        coupon_id=coupon.id,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        discount_amount=calculate_discount(terms, purchase_amount),
        description=coupon.description,
    )


async def consume(db: AsyncSession, coupon_id: uuid.UUID) -> None:
    """Count one use, only while the global limit still allows it."""
    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon_id)
        .where(or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit))
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        raise rejection(CouponError.usage_limit_reached)


async def list_coupons(db: AsyncSession, *, limit: int = 100, offset: int = 0) -> List[Coupon]:
    stmt = select(Coupon).order_by(Coupon.created_at.desc()).offset(offset).limit(limit)
    return list((await db.execute(stmt)).scalars())


async def create_coupon(db: AsyncSession, payload: CouponCreate) -> Coupon:
    data = payload.model_dump()
    if data["start_date"] is None:
        data["start_date"] = _utcnow()
    coupon = Coupon(**data, usage_count=0)
    if not await insert_in_savepoint(db, coupon):
        raise ConflictError(f"Coupon code {payload.code} already exists")
    return coupon
