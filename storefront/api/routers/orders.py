from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import get_current_actor, require_admin, require_user
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.domain.enums import OrderStatus
from storefront.domain.owner import Actor
from storefront.schemas.order import OrderRead, OrderStatusUpdate, PaymentResult
from storefront.services import order_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=List[OrderRead])
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    actor: Actor = Depends(require_user),
):
    return await order_service.list_orders(db, actor, status_filter=status_filter, limit=limit, offset=offset)


@router.get("/lookup", response_model=OrderRead)
async def lookup_order(
    order_number: Optional[str] = Query(default=None, max_length=32),
    tracking_code: Optional[str] = Query(default=None, max_length=32),
    db: AsyncSession = Depends(get_async_db),
    actor: Actor = Depends(get_current_actor),
):
    return await order_service.lookup(db, actor, order_number=order_number, tracking_code=tracking_code)


@router.post("/{order_id}/status", response_model=OrderRead)
async def change_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_async_db),
    _: Actor = Depends(require_admin),
):
    try:
        order = await order_service.transition_status(db, order_id, payload.status)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return order


@router.post("/{order_id}/payment", response_model=OrderRead)
async def payment_callback(
    order_id: UUID,
    payload: PaymentResult,
    db: AsyncSession = Depends(get_async_db),
    _: Actor = Depends(require_admin),
):
    """Outcome reported by the payment gateway integration."""
    try:
        order = await order_service.record_payment_result(
            db, order_id, succeeded=payload.succeeded, reference=payload.reference
        )
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return order
