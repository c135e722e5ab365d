"""Coupon validation and discount arithmetic over plain values."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime

from storefront.domain.enums import DiscountType
from storefront.utils.dates import as_aware


class CouponError(str, enum.Enum):
    not_found = "not_found"
    inactive = "inactive"
    not_yet_active = "not_yet_active"
    expired = "expired"
    usage_limit_reached = "usage_limit_reached"
    per_user_limit_reached = "per_user_limit_reached"
    below_minimum_purchase = "below_minimum_purchase"


COUPON_ERROR_MESSAGES: dict[CouponError, str] = {
    CouponError.not_found: "Invalid coupon code",
    CouponError.inactive: "Coupon is inactive",
    CouponError.not_yet_active: "Coupon is not yet active",
    CouponError.expired: "Coupon has expired",
    CouponError.usage_limit_reached: "Coupon usage limit reached",
    CouponError.per_user_limit_reached: "You have already used this coupon",
    CouponError.below_minimum_purchase: "Minimum purchase not reached",
}


@dataclass(frozen=True, slots=True)
class CouponTerms:
    id: uuid.UUID
    code: str
    discount_type: DiscountType
    discount_value: int
    min_purchase: int = 0
    max_discount: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    user_limit: int | None = 1
    is_active: bool = True
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ValidatedCoupon:
    coupon_id: uuid.UUID
    code: str
    discount_type: DiscountType
    discount_value: int
    discount_amount: int
    description: str | None = None


def normalize_code(code: str) -> str:
    return code.strip().upper()


def check_coupon(
    terms: CouponTerms | None,
    purchase_amount: int,
    *,
    now: datetime,
    user_usage_count: int | None = None,
) -> CouponError | None:
    """Run the checks in order and stop at the first failure.

    ``user_usage_count`` is None for anonymous buyers, which skips the
    per-user check.
    """
    if terms is None:
        return CouponError.not_found
    if not terms.is_active:
        return CouponError.inactive
    start = as_aware(terms.start_date)
    if start is not None and now < start:
        return CouponError.not_yet_active
    end = as_aware(terms.end_date)
    if end is not None and now > end:
        return CouponError.expired
    if terms.usage_limit is not None and terms.usage_count >= terms.usage_limit:
        return CouponError.usage_limit_reached
    if user_usage_count is not None and terms.user_limit and user_usage_count >= terms.user_limit:
        return CouponError.per_user_limit_reached
    if purchase_amount < terms.min_purchase:
        return CouponError.below_minimum_purchase
    return None


def calculate_discount(terms: CouponTerms, amount: int) -> int:
    """Discount in cents, never negative and never above ``amount``."""
    if amount <= 0:
        return 0
    if terms.discount_type == DiscountType.percentage:
        discount = amount * terms.discount_value // 100
        if terms.max_discount is not None:
            discount = min(discount, terms.max_discount)
    else:
        discount = terms.discount_value
    return max(0, min(discount, amount))
