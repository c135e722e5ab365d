# storefront/domain/enums.py
import enum


class ProductStatus(str, enum.Enum):
    draft = "draft"
    active = "active"
    archived = "archived"


class ProductType(str, enum.Enum):
    physical = "physical"
    digital = "digital"


class DiscountType(str, enum.Enum):
    percentage = "percentage"
    fixed = "fixed"


class ShippingMethodId(str, enum.Enum):
    standard = "standard"
    express = "express"
    overnight = "overnight"
    pickup = "pickup"
    # order-only: set when every line is digital, never offered by a zone
    digital = "digital"


class OrderStatus(str, enum.Enum):
    pending_payment = "pending_payment"
    processing = "processing"
    confirmed = "confirmed"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"
    refunded = "refunded"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"
    refunded = "refunded"


class PaymentMethod(str, enum.Enum):
    stripe = "stripe"
    paypal = "paypal"
    cod = "cod"
    bank_transfer = "bank_transfer"
