from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import Shopper, get_shopper
from storefront.core.logging import get_logger
from storefront.db.operations import commit_async, rollback_async
from storefront.db.session_async import get_async_db
from storefront.schemas.order import CheckoutRequest, CheckoutResult, CouponRejectionRead, OrderRead
from storefront.services import event_bus, identity_service, order_service

logger = get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("", response_model=CheckoutResult, status_code=status.HTTP_201_CREATED)
async def checkout(
    payload: CheckoutRequest,
    db: AsyncSession = Depends(get_async_db),
    shopper: Shopper = Depends(get_shopper),
):
    owner = identity_service.resolve(shopper.actor, payload.session_token or shopper.cart_token)
    try:
        result = await order_service.finalize(db, owner, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise

    # the order is committed; a broker outage must not turn it into an error response
    try:
        event_bus.emit_payment_required(order_service.payment_required_payload(result.order))
    except Exception:
        logger.exception(
            "payment_required event not published",
            extra={"order_id": str(result.order.id), "order_number": result.order.order_number},
        )

    rejection = result.coupon_rejection
    return CheckoutResult(
        order=OrderRead.model_validate(result.order),
        coupon_rejection=(
            CouponRejectionRead(code=rejection.code, reason=rejection.reason, detail=rejection.detail)
            if rejection
            else None
        ),
    )
