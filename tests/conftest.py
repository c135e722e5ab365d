# tests/conftest.py
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import httpx
import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("SECRET_KEY", "storefront-test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("SQLITE_BUSY_TIMEOUT_SECONDS", "10")

from storefront.main import app
from storefront.core.config import settings
from storefront.db.base import Base
from storefront.db.session_async import AsyncSessionLocal
from storefront.domain.enums import DiscountType, ProductStatus, ProductType, ShippingMethodId
from storefront.models.coupon import Coupon
from storefront.models.product import Product, ProductVariant
from storefront.models.shipping import ShippingMethod, ShippingZone

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

sync_engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address1": "12 Analytical Way",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "country": "US",
}


# ---------- Fixtures ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create the SQLite tables once per test session."""
    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Short-lived sync session for arranging data."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def client():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_db_session() -> AsyncSession:
    """AsyncSession for direct service tests.

    SQLite takes the write lock on BEGIN, so commit before issuing HTTP calls
    from the same test.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


# --- Catalog / configuration factories (committed, visible to every session) ---

@pytest.fixture(scope="function")
def make_product(db_session: Session) -> Callable[..., Product]:
    def _make(
        *,
        name: str = "Canvas Tote",
        base_price: int = 2000,
        sale_price: int | None = None,
        stock: int = 10,
        allow_backorder: bool = False,
        status: ProductStatus = ProductStatus.active,
        sku: str | None = None,
        product_type: ProductType = ProductType.physical,
    ) -> Product:
        suffix = uuid.uuid4().hex[:8]
        product = Product(
            name=name,
            slug=f"{name.lower().replace(' ', '-')}-{suffix}",
            sku=sku or f"SKU-{suffix.upper()}",
            base_price=base_price,
            sale_price=sale_price,
            status=status,
            stock_quantity=stock,
            allow_backorder=allow_backorder,
            product_type=product_type,
        )
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture(scope="function")
def make_variant(db_session: Session) -> Callable[..., ProductVariant]:
    def _make(product: Product, *, price: int | None = None, stock: int = 5, attributes: dict | None = None) -> ProductVariant:
        variant = ProductVariant(
            product_id=product.id,
            sku=f"VAR-{uuid.uuid4().hex[:8].upper()}",
            attributes=attributes or {"size": "M"},
            price=price,
            stock_quantity=stock,
            is_active=True,
        )
        db_session.add(variant)
        db_session.commit()
        db_session.refresh(variant)
        return variant

    return _make


@pytest.fixture(scope="function")
def make_zone(db_session: Session) -> Callable[..., ShippingZone]:
    def _make(
        name: str,
        *,
        countries: list[str],
        states: list[str] | None = None,
        is_default: bool = False,
        is_active: bool = True,
        sort_order: int = 0,
        methods: list[dict] | None = None,
        created_at: datetime | None = None,
    ) -> ShippingZone:
        zone = ShippingZone(
            name=name,
            countries=countries,
            states=states or [],
            is_default=is_default,
            is_active=is_active,
            sort_order=sort_order,
            created_at=created_at or datetime.now(timezone.utc),
        )
        methods = methods or [
            {"method_id": ShippingMethodId.standard, "label": "Standard Shipping", "price": 499, "free_threshold": 5000},
            {"method_id": ShippingMethodId.express, "label": "Express Shipping", "price": 999},
        ]
        zone.methods = [ShippingMethod(position=i, **method) for i, method in enumerate(methods)]
        db_session.add(zone)
        db_session.commit()
        db_session.refresh(zone)
        return zone

    return _make


@pytest.fixture(scope="function")
def domestic_zone(make_zone) -> ShippingZone:
    return make_zone("Domestic US", countries=["US"], is_default=True, sort_order=10)


@pytest.fixture(scope="function")
def make_coupon(db_session: Session) -> Callable[..., Coupon]:
    def _make(code: str = "SAVE10", **overrides) -> Coupon:
        data = {
            "code": code.upper(),
            "discount_type": DiscountType.percentage,
            "discount_value": 10,
            "min_purchase": 0,
            "start_date": datetime.now(timezone.utc) - timedelta(days=1),
            "usage_count": 0,
            "user_limit": 1,
            "is_active": True,
        }
        data.update(overrides)
        coupon = Coupon(**data)
        db_session.add(coupon)
        db_session.commit()
        db_session.refresh(coupon)
        return coupon

    return _make


# --- Tokens (signed the way the identity provider signs them) ---

def make_token(user_id: uuid.UUID, scopes: tuple[str, ...] = ()) -> str:
    payload = {
        "sub": str(user_id),
        "scopes": list(scopes),
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture(scope="function")
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture(scope="function")
def user_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture(scope="function")
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(uuid.uuid4(), ('admin',))}"}


@pytest.fixture(scope="function")
def address() -> dict[str, str]:
    return dict(ADDRESS)
