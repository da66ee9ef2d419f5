"""create products and reservations

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f9a1c2d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sku", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(255)),
        sa.Column("category", sa.String(128)),
        sa.Column("price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("quantity >= 0", name="ck_product_quantity_nonneg"),
        sa.CheckConstraint("price >= 0", name="ck_product_price_nonneg"),
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "product_sku",
            sa.String(64),
            sa.ForeignKey("products.sku", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("reserved_quantity", sa.Integer(), nullable=False),
        sa.Column("sales_person", sa.String(255), nullable=False, server_default=""),
        sa.Column("discount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("vat", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("reserved_quantity > 0", name="ck_reservation_qty_pos"),
        sa.CheckConstraint("discount >= 0", name="ck_reservation_discount_nonneg"),
        sa.CheckConstraint("vat >= 0", name="ck_reservation_vat_nonneg"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_reservation_status",
        ),
    )
    op.create_index("ix_reservations_product_sku", "reservations", ["product_sku"])
    op.create_index("ix_reservations_created_at", "reservations", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_reservations_created_at", table_name="reservations")
    op.drop_index("ix_reservations_product_sku", table_name="reservations")
    op.drop_table("reservations")
    op.drop_table("products")
