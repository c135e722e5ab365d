from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Enum as SqlEnum, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.db.base import Base
from storefront.db.types import GUID
from storefront.domain.enums import ShippingMethodId


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShippingZone(Base):
    __tablename__ = "shipping_zones"
    __table_args__ = (
        Index("ix_shipping_zones_active_sort", "is_active", "sort_order"),
        Index("ix_shipping_zones_is_default", "is_default"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    # ISO 3166-1 alpha-2 codes, uppercase
    countries: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    # empty = every state of the listed countries
    states: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Only shipping_service.set_default_zone writes this flag.
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    methods: Mapped[list["ShippingMethod"]] = relationship(
        "ShippingMethod",
        back_populates="zone",
        cascade="all, delete-orphan",
        order_by="ShippingMethod.position",
    )


class ShippingMethod(Base):
    __tablename__ = "shipping_methods"
    __table_args__ = (
        UniqueConstraint("zone_id", "method_id", name="uq_shipping_methods_zone_method"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    zone_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("shipping_zones.id", ondelete="CASCADE"), nullable=False
    )
    method_id: Mapped[ShippingMethodId] = mapped_column(SqlEnum(ShippingMethodId, name="shipping_method_id"), nullable=False)
    label: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str] = mapped_column(String(300), default="", nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    free_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estimated_days: Mapped[str] = mapped_column(String(60), default="", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    zone: Mapped[ShippingZone] = relationship("ShippingZone", back_populates="methods")
