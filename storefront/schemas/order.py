from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from storefront.domain.enums import OrderStatus, PaymentMethod, PaymentStatus, ShippingMethodId


class AddressIn(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    company: str = Field(default="", max_length=200)
    address1: str = Field(..., min_length=1, max_length=200)
    address2: str = Field(default="", max_length=200)
    city: str = Field(..., min_length=1, max_length=120)
    state: str = Field(..., min_length=1, max_length=120)
    zip_code: str = Field(..., min_length=1, max_length=30)
    country: str = Field(default="US", min_length=2, max_length=2)
    phone: str = Field(default="", max_length=40)

    @field_validator("country", "state")
    @classmethod
    def upper_region(cls, value: str) -> str:
        return value.strip().upper()


class CheckoutRequest(BaseModel):
    shipping_address: AddressIn
    billing_address: Optional[AddressIn] = None
    billing_same_as_shipping: bool = True
    shipping_method: ShippingMethodId = ShippingMethodId.standard
    coupon_code: Optional[str] = Field(default=None, max_length=60)
    payment_method: PaymentMethod
    guest_email: Optional[EmailStr] = None
    customer_note: Optional[str] = Field(default=None, max_length=1000)
    session_token: Optional[str] = Field(default=None, max_length=128)


class OrderItemRead(BaseModel):
    id: UUID
    product_id: UUID
    variant_id: UUID | None
    name: str
    slug: str | None
    sku: str | None
    variant_info: dict | None
    unit_price: int
    quantity: int
    line_total: int

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: UUID
    order_number: str
    user_id: UUID | None
    guest_email: str | None
    tracking_code: str | None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    currency: str
    subtotal: int
    shipping_cost: int
    tax_amount: int
    discount: int
    total: int
    discount_code: str | None
    shipping_method: ShippingMethodId
    shipping_method_label: str
    shipping_address: dict
    billing_address: dict
    customer_note: str | None
    paid_at: datetime | None
    confirmed_at: datetime | None
    shipped_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None
    refunded_at: datetime | None
    created_at: datetime
    items: List[OrderItemRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class CouponRejectionRead(BaseModel):
    code: str
    reason: str
    detail: str


class CheckoutResult(BaseModel):
    order: OrderRead
    coupon_rejection: CouponRejectionRead | None = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentResult(BaseModel):
    succeeded: bool
    reference: Optional[str] = Field(default=None, max_length=140)
