"""initial ledger schema

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# location_kind est partagé par locations et items : types créés une seule fois
LOCATION_KIND = postgresql.ENUM("warehouse", "inventory", name="location_kind", create_type=False)
MOVEMENT_KIND = postgresql.ENUM(
    "inward", "outward", "damage", "transfer", "adjustment", name="movement_kind", create_type=False
)
MOVEMENT_STATUS = postgresql.ENUM(
    "pending", "approved", "rejected", "completed", name="movement_status", create_type=False
)
ENUMS = (LOCATION_KIND, MOVEMENT_KIND, MOVEMENT_STATUS)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    # ---------- master data ----------
    op.create_table(
        "locations",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("kind", LOCATION_KIND, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("sku", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("unit_cost", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("min_stock_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reorder_point", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("unit_cost >= 0", name="ck_product_unit_cost_nonneg"),
        sa.CheckConstraint("unit_price >= 0", name="ck_product_unit_price_nonneg"),
        sa.CheckConstraint(
            "reorder_point >= 0 AND reorder_point <= min_stock_level", name="ck_product_reorder_le_min"
        ),
    )
    op.create_table(
        "suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("contact_email", sa.String(255)),
        sa.Column("phone", sa.String(64)),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    # ---------- inventory ----------
    op.create_table(
        "items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("sku", sa.String(64), sa.ForeignKey("products.sku", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location_id", sa.BigInteger(), sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("location_kind", LOCATION_KIND, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("min_stock_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reorder_point", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("updated_at"),
        sa.Column("updated_by", sa.String(64)),
        _timestamp("created_at"),
        sa.UniqueConstraint("sku", "location_id", name="uq_item_sku_location"),
        sa.CheckConstraint("quantity >= 0", name="ck_item_quantity_nonneg"),
        sa.CheckConstraint("unit_cost >= 0", name="ck_item_unit_cost_nonneg"),
        sa.CheckConstraint("unit_price >= 0", name="ck_item_unit_price_nonneg"),
        sa.CheckConstraint(
            "reorder_point >= 0 AND reorder_point <= min_stock_level", name="ck_item_reorder_le_min"
        ),
    )
    op.create_index("ix_items_location_id", "items", ["location_id"])

    op.create_table(
        "stock_transfers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "source_location_id", sa.BigInteger(), sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column(
            "destination_location_id",
            sa.BigInteger(),
            sa.ForeignKey("locations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        sa.Column("reference_number", sa.String(64)),
        sa.Column("notes", sa.Text()),
        sa.Column("actor_id", sa.String(64), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("source_location_id <> destination_location_id", name="ck_transfer_locations_differ"),
    )

    # ---------- audit ----------
    op.create_table(
        "audit_records",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("location_id", sa.BigInteger(), sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("audit_date", sa.Date(), nullable=False),
        sa.Column("conducted_by", sa.String(64), nullable=False),
        sa.Column("items_audited", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discrepancies_found", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        _timestamp("created_at"),
        sa.CheckConstraint("discrepancies_found <= items_audited", name="ck_audit_discrepancies_le_items"),
    )
    op.create_index("ix_audit_records_location_id", "audit_records", ["location_id"])

    op.create_table(
        "audit_line_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("audit_id", sa.BigInteger(), sa.ForeignKey("audit_records.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("expected_quantity", sa.Integer(), nullable=False),
        sa.Column("actual_quantity", sa.Integer(), nullable=False),
        sa.Column("discrepancy", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("applied", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("audit_id", "item_id", name="uq_audit_line_item"),
        sa.CheckConstraint("actual_quantity >= 0", name="ck_audit_line_actual_nonneg"),
        sa.CheckConstraint(
            "discrepancy = actual_quantity - expected_quantity", name="ck_audit_line_discrepancy"
        ),
    )
    op.create_index("ix_audit_line_items_audit_id", "audit_line_items", ["audit_id"])
    op.create_index("ix_audit_line_items_item_id", "audit_line_items", ["item_id"])

    # ---------- ledger ----------
    op.create_table(
        "movement_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("kind", MOVEMENT_KIND, nullable=False),
        sa.Column("status", MOVEMENT_STATUS, nullable=False, server_default="completed"),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT")),
        sa.Column("destination", sa.String(255)),
        sa.Column("counterparty_item_id", sa.BigInteger(), sa.ForeignKey("items.id", ondelete="RESTRICT")),
        sa.Column("transfer_id", sa.BigInteger(), sa.ForeignKey("stock_transfers.id", ondelete="RESTRICT")),
        sa.Column("audit_id", sa.BigInteger(), sa.ForeignKey("audit_records.id", ondelete="RESTRICT")),
        sa.Column("unit_price", sa.Numeric(14, 2)),
        sa.Column("reason", sa.String(255)),
        sa.Column("notes", sa.Text()),
        _timestamp("happened_at"),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("reviewed_by", sa.String(64)),
        _timestamp("reviewed_at", nullable=True),
        sa.Column("idempotency_key", sa.String(64), unique=True),
        _timestamp("created_at"),
        sa.CheckConstraint("quantity > 0", name="ck_movement_qty_pos"),
        sa.CheckConstraint("delta = quantity OR delta = -quantity", name="ck_movement_delta_magnitude"),
    )
    op.create_index("ix_movement_entries_item_id", "movement_entries", ["item_id"])
    op.create_index("ix_movement_entries_counterparty_item_id", "movement_entries", ["counterparty_item_id"])
    op.create_index("ix_movement_entries_transfer_id", "movement_entries", ["transfer_id"])
    op.create_index("ix_movement_entries_audit_id", "movement_entries", ["audit_id"])
    op.create_index("ix_movement_entries_item_time", "movement_entries", ["item_id", "happened_at"])

    # ---------- activity trail ----------
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer()),
        sa.Column("details", sa.Text()),
        _timestamp("created_at"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "movement_entries",
        "audit_line_items",
        "audit_records",
        "stock_transfers",
        "items",
        "suppliers",
        "products",
        "locations",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
