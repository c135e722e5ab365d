from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.domain.enums import ShippingMethodId


def _upper_codes(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    seen: list[str] = []
    for value in values:
        code = value.strip().upper()
        if code and code not in seen:
            seen.append(code)
    return seen


def _unique_methods(methods: list["ShippingMethodIn"] | None) -> list["ShippingMethodIn"] | None:
    ids = [m.method_id for m in methods or ()]
    if len(ids) != len(set(ids)):
        raise ValueError("Each shipping method may appear only once per zone")
    return methods


class ShippingMethodIn(BaseModel):
    method_id: ShippingMethodId
    label: str = Field(..., min_length=1, max_length=120)
    description: str = Field(default="", max_length=300)
    price: int = Field(..., ge=0)
    free_threshold: Optional[int] = Field(default=None, ge=0)
    estimated_days: str = Field(default="", max_length=60)
    is_active: bool = True

    @field_validator("method_id")
    @classmethod
    def physical_methods_only(cls, value: ShippingMethodId) -> ShippingMethodId:
        if value == ShippingMethodId.digital:
            raise ValueError("digital delivery is assigned at checkout, not offered by zones")
        return value


class ShippingMethodRead(ShippingMethodIn):
    model_config = ConfigDict(from_attributes=True)


class ShippingZoneCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    countries: List[str] = Field(default_factory=list)
    states: List[str] = Field(default_factory=list)
    methods: List[ShippingMethodIn] = Field(..., min_length=1)
    is_default: bool = False
    is_active: bool = True
    sort_order: int = 0

    @field_validator("countries", "states")
    @classmethod
    def normalize_codes(cls, value: list[str]) -> list[str]:
        return _upper_codes(value)

    @field_validator("methods")
    @classmethod
    def unique_methods(cls, value: list[ShippingMethodIn]) -> list[ShippingMethodIn]:
        return _unique_methods(value)


class ShippingZoneUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    countries: Optional[List[str]] = None
    states: Optional[List[str]] = None
    methods: Optional[List[ShippingMethodIn]] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    # every field may be omitted; an explicit null would wipe a required column
    @field_validator("name", "countries", "states", "methods", "is_active", "sort_order", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("must not be null; omit the field to leave it unchanged")
        return value

    @field_validator("countries", "states")
    @classmethod
    def normalize_codes(cls, value: list[str] | None) -> list[str] | None:
        return _upper_codes(value)

    @field_validator("methods")
    @classmethod
    def unique_methods(cls, value: list[ShippingMethodIn] | None) -> list[ShippingMethodIn] | None:
        return _unique_methods(value)


class ShippingZoneRead(BaseModel):
    id: UUID
    name: str
    countries: List[str]
    states: List[str]
    methods: List[ShippingMethodRead]
    is_default: bool
    is_active: bool
    sort_order: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MethodQuoteRead(BaseModel):
    method_id: ShippingMethodId
    label: str
    description: str
    price: int
    base_price: int
    free_threshold: int | None
    estimated_days: str

    model_config = ConfigDict(from_attributes=True)


class ZoneQuoteRead(BaseModel):
    zone_id: UUID
    zone_name: str
    methods: List[MethodQuoteRead]

    model_config = ConfigDict(from_attributes=True)


class ZoneLookupRead(BaseModel):
    data: ZoneQuoteRead | None
    message: str | None = None
