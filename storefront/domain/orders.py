from __future__ import annotations

from dataclasses import dataclass

from storefront.domain.enums import OrderStatus

# Next happy-path steps; "confirmed" is the only step that may be skipped.
_FORWARD: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.pending_payment: frozenset({OrderStatus.processing}),
    OrderStatus.processing: frozenset({OrderStatus.confirmed, OrderStatus.shipped}),
    OrderStatus.confirmed: frozenset({OrderStatus.shipped}),
    OrderStatus.shipped: frozenset({OrderStatus.delivered}),
}

TERMINAL_STATUSES = frozenset({OrderStatus.delivered, OrderStatus.cancelled, OrderStatus.refunded})

# Orders in these states still hold undelivered stock.
RESTOCKABLE_STATUSES = frozenset({OrderStatus.pending_payment, OrderStatus.processing, OrderStatus.confirmed})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current in TERMINAL_STATUSES or current == target:
        return False
    if target in (OrderStatus.cancelled, OrderStatus.refunded):
        return True
    return target in _FORWARD.get(current, frozenset())


@dataclass(frozen=True, slots=True)
class OrderTotals:
    subtotal: int
    shipping_cost: int
    tax_amount: int
    discount: int
    total: int

    @property
    def balanced(self) -> bool:
        return self.subtotal + self.shipping_cost + self.tax_amount - self.discount == self.total


def compute_totals(subtotal: int, shipping_cost: int, discount: int, tax_rate_bps: int = 0) -> OrderTotals:
    tax_amount = max(0, subtotal - discount) * tax_rate_bps // 10_000
    total = subtotal + shipping_cost + tax_amount - discount
    return OrderTotals(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax_amount=tax_amount,
        discount=discount,
        total=total,
    )


def format_order_number(prefix: str, year: int, month: int, sequence: int, padding: int = 5) -> str:
    return f"{prefix}{year % 100:02d}{month:02d}-{sequence:0{padding}d}"
