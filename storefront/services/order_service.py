"""Order finalization and the order lifecycle.

``finalize`` turns a cart into an order. Everything it writes (the order,
the coupon use, the stock decrement and the emptied cart) shares the
caller's transaction, so the router's single commit makes it all visible at
once and a rollback leaves no trace.
"""

from __future__ import annotations

import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.config import settings
from storefront.core.logging import defect_alert, get_logger
from storefront.core.metrics import record_checkout, record_checkout_rejection, record_identifier_collision
from storefront.db.operations import flush_async, insert_in_savepoint
from storefront.domain.coupons import COUPON_ERROR_MESSAGES, calculate_discount
from storefront.domain.enums import OrderStatus, PaymentStatus, ShippingMethodId
from storefront.domain.orders import RESTOCKABLE_STATUSES, can_transition, compute_totals, format_order_number
from storefront.domain.owner import Actor, CartOwner
from storefront.domain.pricing import PricingView
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem
from storefront.schemas.order import AddressIn, CheckoutRequest
from storefront.services import cart_service, catalog, coupon_service, shipping_service
from storefront.services.exceptions import (
    ConflictError,
    DomainValidationError,
    InvalidTotalError,
    InvalidTransitionError,
    ProductUnavailableError,
    ResourceNotFoundError,
    ShippingUnavailableError,
    StockChangedError,
)

logger = get_logger(__name__)

_TRACKING_ALPHABET = string.ascii_uppercase + string.digits
DIGITAL_DELIVERY_LABEL = "Digital Delivery (Email)"

_STATUS_TIMESTAMPS = {
    OrderStatus.confirmed: "confirmed_at",
    OrderStatus.shipped: "shipped_at",
    OrderStatus.delivered: "delivered_at",
    OrderStatus.cancelled: "cancelled_at",
    OrderStatus.refunded: "refunded_at",
}


@dataclass(frozen=True, slots=True)
class CouponRejection:
    code: str
    reason: str
    detail: str


@dataclass(frozen=True, slots=True)
class FinalizeResult:
    order: Order
    coupon_rejection: CouponRejection | None = None


@dataclass(frozen=True, slots=True)
class _Line:
    item: CartItem
    view: PricingView

    @property
    def line_total(self) -> int:
        return self.view.unit_price * self.item.quantity


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _address_dict(address: AddressIn) -> dict:
    return {key: value.strip() if isinstance(value, str) else value for key, value in address.model_dump().items()}


def _offender(line: _Line, available: int | None = None) -> dict:
    return {
        "item_id": str(line.item.id),
        "product_id": str(line.item.product_id),
        "variant_id": str(line.item.variant_id) if line.item.variant_id else None,
        "sku": line.view.sku,
        "name": line.view.name,
        "requested": line.item.quantity,
        "available": line.view.available_stock if available is None else available,
    }


def _unavailable(item: CartItem, view: PricingView | None) -> dict:
    return {
        "item_id": str(item.id),
        "product_id": str(item.product_id),
        "variant_id": str(item.variant_id) if item.variant_id else None,
        "sku": view.sku if view else None,
        "name": view.name if view else None,
        "requested": item.quantity,
        "available": 0,
    }


def generate_tracking_code(length: int | None = None) -> str:
    length = length or settings.TRACKING_CODE_LENGTH
    return "".join(secrets.choice(_TRACKING_ALPHABET) for _ in range(length))


def _month_prefix(now: datetime) -> str:
    return f"{settings.ORDER_NUMBER_PREFIX}{now.year % 100:02d}{now.month:02d}-"


async def _month_order_count(db: AsyncSession, prefix: str) -> int:
    stmt = select(func.count()).select_from(Order).where(Order.order_number.like(f"{prefix}%"))
    return int((await db.execute(stmt)).scalar_one())


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    order = await db.get(Order, order_id, options=[selectinload(Order.items)], populate_existing=True)
    if order is None:
        raise ResourceNotFoundError("Order not found")
    return order


async def _load_lines(db: AsyncSession, owner: CartOwner):
    """Cart lines split into purchasable ones and ones whose product is gone."""
    cart = await cart_service.find_cart(db, owner)
    if cart is None:
        return None, [], []
    items = list(
        (
            await db.execute(
                select(CartItem)
                .where(CartItem.cart_id == cart.id)
                .order_by(CartItem.created_at, CartItem.id)
                .execution_options(populate_existing=True)
            )
        ).scalars()
    )
    views = await catalog.load_pricing_views(db, [(i.product_id, i.variant_id) for i in items])
    lines, unavailable = [], []
    for item in items:
        view = views.get((item.product_id, item.variant_id))
        if view is not None and view.is_active:
            lines.append(_Line(item=item, view=view))
        else:
            unavailable.append(_unavailable(item, view))
    return cart, lines, unavailable


def _reject(reason: str, message: str, **context) -> None:
    record_checkout_rejection(reason)
    logger.warning(message, extra={"reason": reason, **context})


async def finalize(
    db: AsyncSession,
    owner: CartOwner | None,
    payload: CheckoutRequest,
    *,
    now: datetime | None = None,
) -> FinalizeResult:
    """Price the owner's cart server-side and persist the order.

    The caller commits. Any raised error means nothing may be committed.
    """
    now = now or _utcnow()
    if owner is not None and owner.is_guest and not payload.guest_email:
        raise DomainValidationError("guest_email is required for guest checkout", code="guest_email_required")

    cart, lines, unavailable = (None, [], []) if owner is None else await _load_lines(db, owner)
    if unavailable:
        _reject("product_unavailable", "Checkout rejected: product unavailable", skus=[u["sku"] for u in unavailable])
        raise ProductUnavailableError(unavailable)
    if not lines:
        _reject("empty_cart", "Checkout rejected: cart is empty")
        raise DomainValidationError("Cart is empty", code="empty_cart")

    # 1. stock, authoritative re-read
    offenders = [_offender(line) for line in lines if not line.view.can_supply(line.item.quantity)]
    if offenders:
        _reject("stock_changed", "Checkout rejected: stock changed", skus=[o["sku"] for o in offenders])
        raise StockChangedError(offenders)

    subtotal = sum(line.line_total for line in lines)

    # 2. shipping from the address, never from the client; digital-only carts ship nothing
    address = payload.shipping_address
    if all(line.view.is_digital for line in lines):
        shipping_zone_id = None
        shipping_method, shipping_label, shipping_cost = ShippingMethodId.digital, DIGITAL_DELIVERY_LABEL, 0
    else:
        quote = await shipping_service.resolve_quote(db, address.country, address.state, subtotal)
        method = None
        if quote is not None:
            method = quote.method(payload.shipping_method) or (quote.methods[0] if quote.methods else None)
        if method is None:
            _reject("shipping_unavailable", "Checkout rejected: no shipping zone", country=address.country, state=address.state)
            raise ShippingUnavailableError("Shipping is not available for this address")
        shipping_zone_id = quote.zone_id
        shipping_method, shipping_cost = method.method_id, method.price
        shipping_label = f"Free {method.label}" if method.price == 0 and method.base_price > 0 else method.label

    # 3. coupon against the fresh subtotal
    user_id = owner.user_id
    coupon = None
    discount = 0
    coupon_rejection = None
    if payload.coupon_code and payload.coupon_code.strip():
        coupon, error = await coupon_service.check(db, payload.coupon_code, subtotal, user_id, now=now)
        if error is not None:
            coupon = None
            coupon_rejection = CouponRejection(
                code=payload.coupon_code.strip().upper(),
                reason=error.value,
                detail=COUPON_ERROR_MESSAGES[error],
            )
            _reject(f"coupon_{error.value}", "Coupon dropped at checkout", coupon_code=coupon_rejection.code)
        else:
            discount = calculate_discount(coupon_service.to_terms(coupon), subtotal)

    # 4. totals
    totals = compute_totals(subtotal, shipping_cost, discount, settings.TAX_RATE_BASIS_POINTS)
    if totals.total < 0 or not totals.balanced:
        defect_alert(
            "Order totals invalid",
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping_cost,
            tax_amount=totals.tax_amount,
            discount=totals.discount,
            total=totals.total,
        )
        raise InvalidTotalError("Order total could not be computed")

    # 5. inventory and coupon in the same transaction as the order
    shortfalls = []
    for line in lines:
        if not await catalog.decrement_stock(db, line.item.product_id, line.item.variant_id, line.item.quantity):
            shortfalls.append(_offender(line))
    if shortfalls:
        _reject("stock_changed", "Checkout rejected: stock changed", skus=[o["sku"] for o in shortfalls])
        raise StockChangedError(shortfalls)
    if coupon is not None:
        await coupon_service.consume(db, coupon.id)

    shipping_address = _address_dict(address)
    if payload.billing_same_as_shipping or payload.billing_address is None:
        billing_address = dict(shipping_address)
    else:
        billing_address = _address_dict(payload.billing_address)

    def build_order(order_number: str, tracking_code: str | None) -> Order:
        return Order(
            order_number=order_number,
            user_id=user_id,
            guest_email=None if user_id else str(payload.guest_email).strip().lower(),
            tracking_code=tracking_code,
            shipping_address=shipping_address,
            billing_address=billing_address,
            billing_same_as_shipping=payload.billing_same_as_shipping,
            currency=settings.CURRENCY,
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping_cost,
            tax_amount=totals.tax_amount,
            discount=totals.discount,
            total=totals.total,
            coupon_id=coupon.id if coupon else None,
            discount_code=coupon.code if coupon else None,
            discount_type=coupon.discount_type if coupon else None,
            discount_value=coupon.discount_value if coupon else 0,
            shipping_zone_id=shipping_zone_id,
            shipping_method=shipping_method,
            shipping_method_label=shipping_label,
            status=OrderStatus.pending_payment,
            payment_status=PaymentStatus.pending,
            payment_method=payload.payment_method,
            customer_note=(payload.customer_note or "").strip() or None,
            items=[
                OrderItem(
                    product_id=line.item.product_id,
                    variant_id=line.item.variant_id,
                    name=line.view.name,
                    slug=line.view.slug,
                    sku=line.view.sku,
                    variant_info=line.view.attributes or None,
                    unit_price=line.view.unit_price,
                    quantity=line.item.quantity,
                    line_total=line.line_total,
                )
                for line in lines
            ],
        )

    # 6. identifiers, retried on collision
    prefix = _month_prefix(now)
    order = None
    for attempt in range(settings.IDENTIFIER_MAX_ATTEMPTS):
        sequence = await _month_order_count(db, prefix) + 1 + attempt
        order_number = format_order_number(
            settings.ORDER_NUMBER_PREFIX, now.year, now.month, sequence, settings.ORDER_NUMBER_PADDING
        )
        candidate = build_order(order_number, generate_tracking_code() if user_id is None else None)
        if not await insert_in_savepoint(db, candidate):
            taken = await db.execute(select(Order.id).where(Order.order_number == order_number))
            kind = "order_number" if taken.first() is not None else "tracking_code"
            record_identifier_collision(kind)
            logger.warning("Order identifier collision, retrying", extra={"kind": kind, "attempt": attempt + 1})
            continue
        order = candidate
        break
    if order is None:
        raise ConflictError("Could not allocate a unique order number, please retry")

    await cart_service.clear_cart_by_id(db, cart)

    record_checkout("user" if user_id else "guest")
    logger.info(
        "Order finalized",
        extra={
            "order_number": order.order_number,
            "total": order.total,
            "discount": order.discount,
            "coupon_rejected": coupon_rejection.reason if coupon_rejection else None,
        },
    )
    return FinalizeResult(order=await get_order(db, order.id), coupon_rejection=coupon_rejection)


async def list_orders(
    db: AsyncSession,
    actor: Actor,
    *,
    status_filter: OrderStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Order]:
    """Own orders, newest first; admins see every order."""
    stmt = (
        select(Order)
        .options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.order_number.desc())
        .offset(offset)
        .limit(limit)
    )
    if not actor.is_admin:
        if actor.user_id is None:
            return []
        stmt = stmt.where(Order.user_id == actor.user_id)
    if status_filter:
        stmt = stmt.where(Order.status == status_filter)
    return list((await db.execute(stmt)).scalars())


async def lookup(
    db: AsyncSession,
    actor: Actor,
    *,
    order_number: str | None = None,
    tracking_code: str | None = None,
) -> Order:
    """Tracking codes are bearer secrets; order numbers only resolve for their owner or an admin."""
    if tracking_code:
        stmt = select(Order.id).where(Order.tracking_code == tracking_code.strip().upper())
    elif order_number:
        stmt = select(Order.id).where(Order.order_number == order_number.strip().upper())
        if not actor.is_admin:
            if actor.user_id is None:
                raise ResourceNotFoundError("Order not found")
            stmt = stmt.where(Order.user_id == actor.user_id)
    else:
        raise DomainValidationError("order_number or tracking_code is required")
    order_id = (await db.execute(stmt)).scalar_one_or_none()
    if order_id is None:
        raise ResourceNotFoundError("Order not found")
    return await get_order(db, order_id)


async def transition_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    target: OrderStatus,
    *,
    now: datetime | None = None,
) -> Order:
    order = await get_order(db, order_id)
    current = order.status
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Cannot move order from {current.value} to {target.value}")

    now = now or _utcnow()
    if target in (OrderStatus.cancelled, OrderStatus.refunded) and current in RESTOCKABLE_STATUSES:
        for item in order.items:
            await catalog.restock(db, item.product_id, item.variant_id, item.quantity)
    if target == OrderStatus.refunded and order.payment_status == PaymentStatus.paid:
        order.payment_status = PaymentStatus.refunded

    order.status = target
    stamp = _STATUS_TIMESTAMPS.get(target)
    if stamp:
        setattr(order, stamp, now)
    await flush_async(db)
    logger.info(
        "Order status changed",
        extra={"order_number": order.order_number, "from": current.value, "to": target.value},
    )
    return await get_order(db, order.id)


async def record_payment_result(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    succeeded: bool,
    reference: str | None = None,
    now: datetime | None = None,
) -> Order:
    """Apply a gateway outcome. A repeated success is a no-op."""
    order = await get_order(db, order_id)
    if succeeded:
        if order.payment_status == PaymentStatus.paid:
            return order
        if order.status != OrderStatus.pending_payment:
            raise InvalidTransitionError(f"Order in status {order.status.value} cannot be paid")
        order.payment_status = PaymentStatus.paid
        order.paid_at = now or _utcnow()
        order.status = OrderStatus.processing
    else:
        if order.payment_status == PaymentStatus.paid:
            raise ConflictError("Order is already paid")
        order.payment_status = PaymentStatus.failed
    if reference:
        order.payment_reference = reference
    await flush_async(db)
    logger.info(
        "Payment result recorded",
        extra={"order_number": order.order_number, "succeeded": succeeded},
    )
    return await get_order(db, order.id)


def payment_required_payload(order: Order) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "total": order.total,
        "currency": order.currency,
    }
