from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.core.logging import get_logger
from storefront.services.exceptions import (
    ConflictError,
    CouponRejectedError,
    DomainValidationError,
    InvalidTotalError,
    ResourceNotFoundError,
    ServiceError,
    StockChangedError,
)

logger = get_logger(__name__)


def _body(exc: ServiceError, **extra: Any) -> dict[str, Any]:
    return {"detail": exc.detail, "code": exc.code, **extra}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResourceNotFoundError)
    async def handle_not_found(_: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=_body(exc))

    @app.exception_handler(DomainValidationError)
    async def handle_validation(_: Request, exc: DomainValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content=_body(exc))

    @app.exception_handler(CouponRejectedError)
    async def handle_coupon_rejected(_: Request, exc: CouponRejectedError) -> JSONResponse:
        return JSONResponse(status_code=422, content=_body(exc, reason=exc.reason))

    @app.exception_handler(ConflictError)
    async def handle_conflict(_: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content=_body(exc))

    @app.exception_handler(StockChangedError)
    async def handle_stock_changed(_: Request, exc: StockChangedError) -> JSONResponse:
        return JSONResponse(status_code=409, content=_body(exc, items=exc.items))

    @app.exception_handler(InvalidTotalError)
    async def handle_invalid_total(_: Request, exc: InvalidTotalError) -> JSONResponse:
        logger.error("Invalid order total", extra={"detail": exc.detail})
        return JSONResponse(status_code=500, content=_body(exc))

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_body(exc))
