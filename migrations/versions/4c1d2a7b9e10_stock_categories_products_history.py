"""
stock tables: stock_categories, stock_products, stock_history (append-only ledger)

Revision ID: 4c1d2a7b9e10
Revises:
Create Date: 2026-10-17 10:12:43.518203
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as pg

# revision identifiers, used by Alembic.
revision: str = "4c1d2a7b9e10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # UUIDs
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    # ---------- stock_categories ----------
    op.create_table(
        "stock_categories",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("name_nl", sa.String(), nullable=True),
        sa.Column("name_fr", sa.String(), nullable=True),
        sa.Column("name_en", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("icon", sa.String(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    # ---------- stock_products ----------
    op.create_table(
        "stock_products",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("category_id", pg.UUID(as_uuid=True), sa.ForeignKey("stock_categories.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("name_nl", sa.String(), nullable=True),
        sa.Column("name_fr", sa.String(), nullable=True),
        sa.Column("name_en", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sku", sa.String(), nullable=True, unique=True),
        sa.Column("barcode", sa.String(), nullable=True),
        sa.Column("unit", sa.String(), nullable=False, server_default="pcs"),
        sa.Column("current_quantity", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("minimum_stock", sa.Numeric(14, 3), nullable=False, server_default="0"),
        sa.Column("maximum_stock", sa.Numeric(14, 3), nullable=True),
        sa.Column("reorder_point", sa.Numeric(14, 3), nullable=True),
        sa.Column("cost_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("storage_location", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),  # compare-and-swap key
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_check_constraint(
        "ck_stock_products_quantity_nonneg", "stock_products", "current_quantity >= 0"
    )
    op.create_check_constraint(
        "ck_stock_products_minimum_nonneg", "stock_products", "minimum_stock >= 0"
    )
    op.create_index("ix_stock_products_category", "stock_products", ["category_id"])

    # ---------- stock_history ----------
    op.create_table(
        "stock_history",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("product_id", pg.UUID(as_uuid=True), sa.ForeignKey("stock_products.id"), nullable=False),
        sa.Column("transaction_type", sa.String(16), nullable=False),  # 'IN','OUT','ADJUSTMENT','WASTE','TRANSFER'
        sa.Column("quantity_change", sa.Numeric(14, 3), nullable=False),
        sa.Column("previous_quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("new_quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_cost", sa.Numeric(18, 5), nullable=True),
        sa.Column("reference_number", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(), nullable=True),
        sa.Column("transaction_date", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("metadata", pg.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_check_constraint(
        "ck_stock_history_type",
        "stock_history",
        "transaction_type in ('IN','OUT','ADJUSTMENT','WASTE','TRANSFER')",
    )
    op.create_check_constraint(
        "ck_stock_history_new_nonneg", "stock_history", "new_quantity >= 0"
    )
    op.create_check_constraint(
        "ck_stock_history_reconciles",
        "stock_history",
        "previous_quantity + quantity_change = new_quantity",
    )
    op.create_index("ix_stock_history_product_date", "stock_history", ["product_id", "transaction_date"])
    op.create_index("ix_stock_history_recent", "stock_history", ["transaction_date"])

    # ---------- append-only ledger ----------
    op.execute(
        """
        CREATE OR REPLACE FUNCTION stock_history_append_only() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'stock_history rows are append-only';
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_stock_history_append_only
            BEFORE UPDATE OR DELETE ON stock_history
            FOR EACH ROW EXECUTE FUNCTION stock_history_append_only();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_stock_history_append_only ON stock_history;")
    op.execute("DROP FUNCTION IF EXISTS stock_history_append_only();")
    op.drop_index("ix_stock_history_recent", table_name="stock_history")
    op.drop_index("ix_stock_history_product_date", table_name="stock_history")
    op.drop_constraint("ck_stock_history_reconciles", "stock_history", type_="check")
    op.drop_constraint("ck_stock_history_new_nonneg", "stock_history", type_="check")
    op.drop_constraint("ck_stock_history_type", "stock_history", type_="check")
    op.drop_table("stock_history")
    op.drop_index("ix_stock_products_category", table_name="stock_products")
    op.drop_constraint("ck_stock_products_minimum_nonneg", "stock_products", type_="check")
    op.drop_constraint("ck_stock_products_quantity_nonneg", "stock_products", type_="check")
    op.drop_table("stock_products")
    op.drop_table("stock_categories")
