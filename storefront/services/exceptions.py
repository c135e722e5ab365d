# storefront/services/exceptions.py
from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base class for service layer errors."""

    code = "service_error"

    def __init__(self, detail: str, code: str | None = None):
        self.detail = detail
        if code is not None:
            self.code = code
        super().__init__(detail)


class DomainValidationError(ServiceError):
    """Invalid domain input."""

    code = "validation_error"


class ResourceNotFoundError(ServiceError):
    code = "not_found"


class ConflictError(ServiceError):
    """State conflict for the requested operation."""

    code = "conflict"


class InventoryError(ConflictError):
    code = "inventory_error"


class OutOfStockError(InventoryError):
    code = "out_of_stock"


class InsufficientStockError(InventoryError):
    code = "insufficient_stock"

    def __init__(self, detail: str, available: int):
        self.available = available
        super().__init__(detail)


class StockChangedError(InventoryError):
    """Raised at finalization; ``items`` names every line that can no longer be supplied."""

    code = "stock_changed"

    def __init__(self, items: list[dict[str, Any]], detail: str | None = None):
        self.items = items
        if detail is None:
            skus = ", ".join(str(item.get("sku") or item.get("name")) for item in items)
            detail = f"Stock changed for: {skus}"
        super().__init__(detail)


class ProductUnavailableError(StockChangedError):
    """Cart lines whose product was archived, deactivated or removed since it was added."""

    code = "product_unavailable"

    def __init__(self, items: list[dict[str, Any]]):
        names = ", ".join(str(item.get("name") or item.get("sku") or item.get("product_id")) for item in items)
        super().__init__(items, f"{names} is no longer available")


class CouponRejectedError(DomainValidationError):
    code = "coupon_rejected"

    def __init__(self, detail: str, reason: str):
        self.reason = reason
        super().__init__(detail)


class ShippingUnavailableError(DomainValidationError):
    code = "shipping_unavailable"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class InvalidTotalError(ServiceError):
    """Totals that can never be produced from valid inputs."""

    code = "invalid_total"
