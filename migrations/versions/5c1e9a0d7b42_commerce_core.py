"""commerce core: catalog, carts, wishlists, shipping zones, coupons, orders

Revision ID: 5c1e9a0d7b42
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from __future__ import annotations

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5c1e9a0d7b42"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)

# Types are created once up front; the tables reference them with create_type=False.
product_status = postgresql.ENUM("draft", "active", "archived", name="productstatus", create_type=False)
product_type = postgresql.ENUM("physical", "digital", name="producttype", create_type=False)
discount_type = postgresql.ENUM("percentage", "fixed", name="discounttype", create_type=False)
zone_method_id = postgresql.ENUM(
    "standard", "express", "overnight", "pickup", name="shipping_method_id", create_type=False
)
order_method_id = postgresql.ENUM(
    "standard", "express", "overnight", "pickup", "digital", name="shippingmethodid", create_type=False
)
order_status = postgresql.ENUM(
    "pending_payment", "processing", "confirmed", "shipped", "delivered", "cancelled", "refunded",
    name="orderstatus",
    create_type=False,
)
payment_status = postgresql.ENUM("pending", "paid", "failed", "refunded", name="paymentstatus", create_type=False)
payment_method = postgresql.ENUM(
    "stripe", "paypal", "cod", "bank_transfer", name="paymentmethod", create_type=False
)

_ENUMS = (
    product_status,
    product_type,
    discount_type,
    zone_method_id,
    order_method_id,
    order_status,
    payment_status,
    payment_method,
)


def _now() -> sa.TextClause:
    return sa.text("now()")


def upgrade() -> None:
    bind = op.get_bind()
    for enum in _ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "products",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=220), nullable=False, unique=True),
        sa.Column("sku", sa.String(length=64), nullable=True, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("base_price", sa.Integer(), nullable=False),
        sa.Column("sale_price", sa.Integer(), nullable=True),
        sa.Column("status", product_status, nullable=False, server_default="active"),
        sa.Column("product_type", product_type, nullable=False, server_default="physical"),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("allow_backorder", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "product_variants",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("product_id", UUID, nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False, unique=True),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=True),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_product_variants_product_id", "product_variants", ["product_id"])

    op.create_table(
        "carts",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("user_id", UUID, nullable=True),
        sa.Column("session_token", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.UniqueConstraint("user_id", name="uq_carts_user_id"),
        sa.UniqueConstraint("session_token", name="uq_carts_session_token"),
    )

    op.create_table(
        "cart_items",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("cart_id", UUID, nullable=False),
        sa.Column("product_id", UUID, nullable=False),
        sa.Column("variant_id", UUID, nullable=True),
        sa.Column("line_key", sa.String(length=80), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_snapshot", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["cart_id"], ["carts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("cart_id", "line_key", name="uq_cart_items_cart_line"),
    )

    op.create_table(
        "wishlists",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("user_id", UUID, nullable=True),
        sa.Column("session_token", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.UniqueConstraint("user_id", name="uq_wishlists_user_id"),
        sa.UniqueConstraint("session_token", name="uq_wishlists_session_token"),
    )

    op.create_table(
        "wishlist_items",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("wishlist_id", UUID, nullable=False),
        sa.Column("product_id", UUID, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(["wishlist_id"], ["wishlists.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("wishlist_id", "product_id", name="uq_wishlist_items_product"),
    )

    op.create_table(
        "shipping_zones",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("countries", sa.JSON(), nullable=False),
        sa.Column("states", sa.JSON(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
    )
    op.create_index("ix_shipping_zones_active_sort", "shipping_zones", ["is_active", "sort_order"])
    op.create_index("ix_shipping_zones_is_default", "shipping_zones", ["is_default"])

    op.create_table(
        "shipping_methods",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("zone_id", UUID, nullable=False),
        sa.Column("method_id", zone_method_id, nullable=False),
        sa.Column("label", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("free_threshold", sa.Integer(), nullable=True),
        sa.Column("estimated_days", sa.String(length=60), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["zone_id"], ["shipping_zones.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("zone_id", "method_id", name="uq_shipping_methods_zone_method"),
    )

    op.create_table(
        "coupons",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=60), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", discount_type, nullable=False, server_default="percentage"),
        sa.Column("discount_value", sa.Integer(), nullable=False),
        sa.Column("min_purchase", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_discount", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_limit", sa.Integer(), nullable=True, server_default="1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("order_number", sa.String(length=32), nullable=False),
        sa.Column("user_id", UUID, nullable=True),
        sa.Column("guest_email", sa.String(length=320), nullable=True),
        sa.Column("tracking_code", sa.String(length=32), nullable=True, unique=True),
        sa.Column("shipping_address", sa.JSON(), nullable=False),
        sa.Column("billing_address", sa.JSON(), nullable=False),
        sa.Column("billing_same_as_shipping", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("subtotal", sa.Integer(), nullable=False),
        sa.Column("shipping_cost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("coupon_id", UUID, nullable=True),
        sa.Column("discount_code", sa.String(length=60), nullable=True),
        sa.Column("discount_type", discount_type, nullable=True),
        sa.Column("discount_value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shipping_zone_id", UUID, nullable=True),
        sa.Column("shipping_method", order_method_id, nullable=False),
        sa.Column("shipping_method_label", sa.String(length=120), nullable=False),
        sa.Column("status", order_status, nullable=False, server_default="pending_payment"),
        sa.Column("payment_status", payment_status, nullable=False, server_default="pending"),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("payment_reference", sa.String(length=140), nullable=True),
        sa.Column("customer_note", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("shipped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"], ondelete="SET NULL"),
        sa.CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
        sa.CheckConstraint(
            "subtotal + shipping_cost + tax_amount - discount = total", name="ck_orders_total_balanced"
        ),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_user_coupon", "orders", ["user_id", "coupon_id"])

    op.create_table(
        "order_items",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("order_id", UUID, nullable=False),
        sa.Column("product_id", UUID, nullable=False),
        sa.Column("variant_id", UUID, nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=220), nullable=True),
        sa.Column("sku", sa.String(length=64), nullable=True),
        sa.Column("variant_info", sa.JSON(), nullable=True),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("line_total", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])


def downgrade() -> None:
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")

    op.drop_index("ix_orders_user_coupon", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_user_id", table_name="orders")
    op.drop_index("ix_orders_order_number", table_name="orders")
    op.drop_table("orders")

    op.drop_index("ix_coupons_code", table_name="coupons")
    op.drop_table("coupons")

    op.drop_table("shipping_methods")
    op.drop_index("ix_shipping_zones_is_default", table_name="shipping_zones")
    op.drop_index("ix_shipping_zones_active_sort", table_name="shipping_zones")
    op.drop_table("shipping_zones")

    op.drop_table("wishlist_items")
    op.drop_table("wishlists")
    op.drop_table("cart_items")
    op.drop_table("carts")

    op.drop_index("ix_product_variants_product_id", table_name="product_variants")
    op.drop_table("product_variants")
    op.drop_table("products")

    bind = op.get_bind()
    for enum in reversed(_ENUMS):
        enum.drop(bind, checkfirst=True)
