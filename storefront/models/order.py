import uuid

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.db.base import Base
from storefront.db.types import GUID
from storefront.domain.enums import (
    DiscountType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingMethodId,
)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_user_coupon", "user_id", "coupon_id"),
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
        CheckConstraint("subtotal + shipping_cost + tax_amount - discount = total", name="ck_orders_total_balanced"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)

    # Buyer: authenticated user or guest (email + tracking code)
    user_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), nullable=True, index=True)
    guest_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    tracking_code: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)

    shipping_address: Mapped[dict] = mapped_column(JSON, nullable=False)
    billing_address: Mapped[dict] = mapped_column(JSON, nullable=False)
    billing_same_as_shipping: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Totales en centavos: subtotal + shipping_cost + tax_amount - discount == total
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_cost: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tax_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)

    coupon_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    discount_code: Mapped[str | None] = mapped_column(String(60), nullable=True)
    discount_type: Mapped[DiscountType | None] = mapped_column(Enum(DiscountType), nullable=True)
    discount_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    shipping_zone_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), nullable=True)
    shipping_method: Mapped[ShippingMethodId] = mapped_column(Enum(ShippingMethodId), nullable=False)
    shipping_method_label: Mapped[str] = mapped_column(String(120), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus), default=OrderStatus.pending_payment, nullable=False, index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.pending, nullable=False
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(140), nullable=True)

    customer_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    paid_at = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at = mapped_column(DateTime(timezone=True), nullable=True)
    shipped_at = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at = mapped_column(DateTime(timezone=True), nullable=True)

    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), onupdate=func.now())

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )


class OrderItem(Base):
    """Denormalized line snapshot; later catalog edits never touch it."""

    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(GUID(), nullable=False)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), nullable=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(220), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(64), nullable=True)
    variant_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total: Mapped[int] = mapped_column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
