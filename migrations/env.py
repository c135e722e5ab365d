# migrations/env.py
from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from storefront.core.config import settings
from storefront.db.base import Base

# Every model module must be imported so Base.metadata is complete.
from storefront.models import cart, coupon, order, product, shipping, wishlist  # noqa: F401,E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def sync_url(url: str) -> str:
    """Alembic runs on sync drivers: asyncpg becomes psycopg, aiosqlite becomes pysqlite."""
    if url.startswith("postgresql+asyncpg://"):
        return url.replace("+asyncpg", "+psycopg", 1)
    if url.startswith(("postgresql://", "postgres://")):
        return "postgresql+psycopg://" + url.split("://", 1)[1]
    if url.startswith("sqlite+aiosqlite:"):
        return url.replace("+aiosqlite", "", 1)
    return url


URL = sync_url(config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL)


def _options(**extra: Any) -> dict[str, Any]:
    return {"target_metadata": target_metadata, "compare_type": True, **extra}


def run_migrations_offline() -> None:
    context.configure(url=URL, literal_binds=True, dialect_opts={"paramstyle": "named"}, **_options())
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(URL, poolclass=pool.NullPool)
    with engine.connect() as connection:
        # sqlite cannot ALTER most constraints in place
        context.configure(connection=connection, **_options(render_as_batch=connection.dialect.name == "sqlite"))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
