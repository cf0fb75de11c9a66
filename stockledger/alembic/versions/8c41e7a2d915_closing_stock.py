"""closing stock

Revision ID: 8c41e7a2d915
Revises: 3f2a9c1d7b40
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "8c41e7a2d915"
down_revision: Union[str, Sequence[str], None] = "3f2a9c1d7b40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "closing_stocks",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("location_id", sa.BigInteger(), sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("opening_quantity", sa.Integer(), nullable=False),
        sa.Column("inward_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("outward_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("damage_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("transfer_in_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("transfer_out_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("adjustment_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("closing_quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_value", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("generated_by", sa.String(64), nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("item_id", "period_end", name="uq_closing_stock_item_period"),
        sa.CheckConstraint("period_start <= period_end", name="ck_closing_stock_period"),
        sa.CheckConstraint(
            "closing_quantity = opening_quantity + inward_quantity - outward_quantity - damage_quantity"
            " + transfer_in_quantity - transfer_out_quantity + adjustment_quantity",
            name="ck_closing_stock_balance",
        ),
    )
    op.create_index("ix_closing_stocks_item_id", "closing_stocks", ["item_id"])
    op.create_index("ix_closing_stocks_location_id", "closing_stocks", ["location_id"])


def downgrade() -> None:
    op.drop_index("ix_closing_stocks_location_id", table_name="closing_stocks")
    op.drop_index("ix_closing_stocks_item_id", table_name="closing_stocks")
    op.drop_table("closing_stocks")
