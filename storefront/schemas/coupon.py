from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from storefront.domain.enums import DiscountType


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=60)
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.percentage
    discount_value: int = Field(..., ge=0)
    min_purchase: int = Field(default=0, ge=0)
    max_discount: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(default=None, ge=0)
    user_limit: Optional[int] = Field(default=1, ge=0)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def check_terms(self) -> "CouponCreate":
        if self.discount_type == DiscountType.percentage and self.discount_value > 100:
            raise ValueError("Percentage discounts cannot exceed 100")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class CouponRead(BaseModel):
    id: UUID
    code: str
    description: str | None
    discount_type: DiscountType
    discount_value: int
    min_purchase: int
    max_discount: int | None
    start_date: datetime | None
    end_date: datetime | None
    usage_limit: int | None
    usage_count: int
    user_limit: int | None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=60)
    subtotal: int = Field(..., ge=0)


class ValidatedCouponRead(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: int
    discount_amount: int
    description: str | None = None

    model_config = ConfigDict(from_attributes=True)
