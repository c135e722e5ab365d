# storefront/main.py
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.error_handlers import register_exception_handlers
from storefront.api.routers import cart, checkout, coupons, orders, shipping, wishlist
from storefront.core.config import settings
from storefront.core.logging import setup_logging
from storefront.core.metrics import export_metrics
from storefront.middleware import ObservabilityMiddleware

# --- Models registration (so Alembic and create_all see every table) ---
import storefront.models.product    # noqa: F401
import storefront.models.cart       # noqa: F401
import storefront.models.wishlist   # noqa: F401
import storefront.models.shipping   # noqa: F401
import storefront.models.coupon     # noqa: F401
import storefront.models.order      # noqa: F401

# --- Celery tasks registration (event_bus looks them up by name) ---
import storefront.tasks  # noqa: F401

setup_logging()

TAGS_METADATA = [
    {"name": "cart", "description": "Guest and customer carts priced against the live catalog."},
    {"name": "wishlist", "description": "Saved products for guests and customers."},
    {"name": "shipping", "description": "Shipping zone lookup and administration."},
    {"name": "coupons", "description": "Discount code validation and administration."},
    {"name": "checkout", "description": "Order finalization from the current cart."},
    {"name": "orders", "description": "Order history, guest tracking and lifecycle."},
]

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "Storefront commerce core.\n\n"
        "- **Cart / Wishlist**: guest sessions via `cart_session` cookie or `X-Cart-Session` header, "
        "merged into the account on the first authenticated request.\n"
        "- **Checkout**: server-side pricing, shipping and coupons; amounts are integer cents.\n"
        "- **Orders**: tracking codes for guests, admin status changes and payment callbacks."
    ),
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# --- Middlewares ---
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.CART_SESSION_HEADER, "X-Request-ID"],
)

register_exception_handlers(app)

# --- Routers ---
app.include_router(cart.router, prefix=settings.API_V1_STR)
app.include_router(wishlist.router, prefix=settings.API_V1_STR)
app.include_router(shipping.router, prefix=settings.API_V1_STR)
app.include_router(coupons.router, prefix=settings.API_V1_STR)
app.include_router(checkout.router, prefix=settings.API_V1_STR)
app.include_router(orders.router, prefix=settings.API_V1_STR)


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    payload, content_type = export_metrics()
    return Response(content=payload, media_type=content_type)


@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
