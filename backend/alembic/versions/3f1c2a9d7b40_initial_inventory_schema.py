"""initial inventory schema

Revision ID: 3f1c2a9d7b40
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
TS = sa.DateTime(timezone=True)

role = sa.Enum("admin", "staff", "viewer", name="role")
stock_count_status = sa.Enum("IN_PROGRESS", "COMPLETED", "CANCELLED", name="stock_count_status")
receipt_status = sa.Enum("DRAFT", "CONFIRMED", "CANCELLED", name="receipt_status")
order_status = sa.Enum("DRAFT", "SENT", "PARTIALLY_RECEIVED", "RECEIVED", name="order_status")
notification_type = sa.Enum("LOW_STOCK", name="notification_type")


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", PK, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_table(
        "users",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", role, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_table(
        "suppliers",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("blocked", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("organization_id", "name", name="uq_supplier_org_name"),
    )
    op.create_table(
        "locations",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("parent_id", PK, sa.ForeignKey("locations.id", ondelete="SET NULL")),
        sa.UniqueConstraint("organization_id", "name", name="uq_location_org_name"),
    )
    op.create_table(
        "items",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(64)),
        sa.Column("unit", sa.String(32)),
        sa.Column("default_supplier_id", PK, sa.ForeignKey("suppliers.id", ondelete="SET NULL")),
    )
    op.create_index("ix_items_org", "items", ["organization_id"])

    # ---------- ledger ----------
    op.create_table(
        "location_inventory",
        sa.Column("item_id", PK, sa.ForeignKey("items.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column("location_id", PK, sa.ForeignKey("locations.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reorder_point", sa.Integer()),
        sa.Column("reorder_quantity", sa.Integer()),
        sa.Column("max_stock", sa.Integer()),
        sa.Column("updated_at", TS, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity >= 0", name="ck_location_inventory_qty_nonneg"),
        sa.CheckConstraint(
            "reorder_point IS NULL OR reorder_point >= 0", name="ck_location_inventory_reorder_point_nonneg"
        ),
        sa.CheckConstraint(
            "reorder_quantity IS NULL OR reorder_quantity > 0", name="ck_location_inventory_reorder_qty_pos"
        ),
        sa.CheckConstraint("max_stock IS NULL OR max_stock >= 0", name="ck_location_inventory_max_stock_nonneg"),
    )
    op.create_table(
        "stock_adjustments",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("item_id", PK, sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("location_id", PK, sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255)),
        sa.Column("note", sa.Text()),
        sa.Column("created_by_id", PK, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", TS, nullable=False),
        sa.CheckConstraint("quantity <> 0", name="ck_stock_adjustment_qty_nonzero"),
    )
    op.create_index(
        "ix_stock_adjustments_item_location_time",
        "stock_adjustments",
        ["item_id", "location_id", "created_at"],
    )

    # ---------- stock count ----------
    op.create_table(
        "stock_count_sessions",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("location_id", PK, sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", stock_count_status, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by_id", PK, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("completed_at", TS),
    )
    op.create_table(
        "stock_count_lines",
        sa.Column("id", PK, primary_key=True),
        sa.Column("session_id", PK, sa.ForeignKey("stock_count_sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", PK, sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("counted_quantity", sa.Integer(), nullable=False),
        sa.Column("system_quantity", sa.Integer(), nullable=False),
        sa.Column("variance", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.UniqueConstraint("session_id", "item_id", name="uq_stock_count_line_session_item"),
        sa.CheckConstraint("counted_quantity >= 0", name="ck_stock_count_line_counted_nonneg"),
    )

    # ---------- procurement / inbound ----------
    op.create_table(
        "orders",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("supplier_id", PK, sa.ForeignKey("suppliers.id", ondelete="RESTRICT")),
        sa.Column("reference", sa.String(64)),
        sa.Column("status", order_status, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by_id", PK, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.Column("sent_at", TS),
        sa.Column("received_at", TS),
    )
    op.create_table(
        "order_items",
        sa.Column("id", PK, primary_key=True),
        sa.Column("order_id", PK, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", PK, sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2)),
        sa.UniqueConstraint("order_id", "item_id", name="uq_order_item_order_item"),
        sa.CheckConstraint("quantity > 0", name="ck_order_item_qty_pos"),
        sa.CheckConstraint("unit_price IS NULL OR unit_price >= 0", name="ck_order_item_unit_price_nonneg"),
    )
    op.create_table(
        "goods_receipts",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("location_id", PK, sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("order_id", PK, sa.ForeignKey("orders.id", ondelete="RESTRICT")),
        sa.Column("supplier_id", PK, sa.ForeignKey("suppliers.id", ondelete="SET NULL")),
        sa.Column("status", receipt_status, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by_id", PK, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("received_at", TS),
    )
    op.create_index("ix_goods_receipts_order_id", "goods_receipts", ["order_id"])
    op.create_table(
        "goods_receipt_lines",
        sa.Column("id", PK, primary_key=True),
        sa.Column("receipt_id", PK, sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", PK, sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("batch_number", sa.String(64)),
        sa.Column("expiry_date", sa.Date()),
        sa.Column("notes", sa.Text()),
        sa.UniqueConstraint("receipt_id", "item_id", name="uq_gr_line_receipt_item"),
        sa.CheckConstraint("quantity >= 0", name="ck_gr_line_qty_nonneg"),
    )

    # ---------- side channels ----------
    op.create_table(
        "notifications",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("item_id", PK, sa.ForeignKey("items.id", ondelete="CASCADE")),
        sa.Column("location_id", PK, sa.ForeignKey("locations.id", ondelete="CASCADE")),
        sa.Column("order_id", PK, sa.ForeignKey("orders.id", ondelete="CASCADE")),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_notifications_item_location", "notifications", ["item_id", "location_id", "type"])
    op.create_table(
        "audit_log",
        sa.Column("id", PK, primary_key=True),
        sa.Column("organization_id", PK, sa.ForeignKey("organizations.id", ondelete="SET NULL")),
        sa.Column("actor_id", PK, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("meta", sa.Text()),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_entity", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_notifications_item_location", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("goods_receipt_lines")
    op.drop_index("ix_goods_receipts_order_id", table_name="goods_receipts")
    op.drop_table("goods_receipts")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("stock_count_lines")
    op.drop_table("stock_count_sessions")
    op.drop_index("ix_stock_adjustments_item_location_time", table_name="stock_adjustments")
    op.drop_table("stock_adjustments")
    op.drop_table("location_inventory")
    op.drop_index("ix_items_org", table_name="items")
    op.drop_table("items")
    op.drop_table("locations")
    op.drop_table("suppliers")
    op.drop_table("users")
    op.drop_table("organizations")

    bind = op.get_bind()
    for enum in (notification_type, order_status, receipt_status, stock_count_status, role):
        enum.drop(bind, checkfirst=True)
