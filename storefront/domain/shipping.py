"""Shipping zone matching.

Tiers, first match wins:
  1. active zone listing the country and the state (only when a state is given)
  2. active zone listing the country with no states (whole country)
  3. the active default zone

Inside a tier zones are ordered by ``sort_order`` ascending, then by creation
time (older first), then by id, so a fixed table always yields the same zone.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from storefront.domain.enums import ShippingMethodId


@dataclass(frozen=True, slots=True)
class MethodRule:
    method_id: ShippingMethodId
    label: str
    price: int
    free_threshold: int | None = None
    description: str = ""
    estimated_days: str = ""
    is_active: bool = True

    def price_for(self, subtotal: int | None) -> int:
        if subtotal is not None and self.free_threshold is not None and subtotal >= self.free_threshold:
            return 0
        return self.price


@dataclass(frozen=True, slots=True)
class ZoneRule:
    id: uuid.UUID
    name: str
    countries: frozenset[str]
    states: frozenset[str]
    methods: tuple[MethodRule, ...] = ()
    is_default: bool = False
    is_active: bool = True
    sort_order: int = 0
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class MethodQuote:
    method_id: ShippingMethodId
    label: str
    price: int
    base_price: int
    free_threshold: int | None
    description: str = ""
    estimated_days: str = ""


@dataclass(frozen=True, slots=True)
class ZoneQuote:
    zone_id: uuid.UUID
    zone_name: str
    methods: tuple[MethodQuote, ...] = field(default_factory=tuple)

    def method(self, method_id: ShippingMethodId) -> MethodQuote | None:
        return next((m for m in self.methods if m.method_id == method_id), None)


def normalize_region(code: str | None) -> str | None:
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


def _tier_order(zone: ZoneRule) -> tuple:
    created = zone.created_at.timestamp() if zone.created_at else float("inf")
    return (zone.sort_order, created, str(zone.id))


def _first(zones: Sequence[ZoneRule]) -> ZoneRule | None:
    return min(zones, key=_tier_order) if zones else None


def match_zone(zones: Sequence[ZoneRule], country: str, state: str | None = None) -> ZoneRule | None:
    country = normalize_region(country)
    state = normalize_region(state)
    active = [z for z in zones if z.is_active]

    if country:
        if state:
            hit = _first([z for z in active if country in z.countries and state in z.states])
            if hit:
                return hit
        hit = _first([z for z in active if country in z.countries and not z.states])
        if hit:
            return hit

    return _first([z for z in active if z.is_default])


def quote_zone(zone: ZoneRule, subtotal: int | None = None) -> ZoneQuote:
    return ZoneQuote(
        zone_id=zone.id,
        zone_name=zone.name,
        methods=tuple(
            MethodQuote(
                method_id=m.method_id,
                label=m.label,
                price=m.price_for(subtotal),
                base_price=m.price,
                free_threshold=m.free_threshold,
                description=m.description,
                estimated_days=m.estimated_days,
            )
            for m in zone.methods
            if m.is_active
        ),
    )
