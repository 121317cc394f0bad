# restostock/tables.py
from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DDL,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    event,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .models import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

QUANTITY = Numeric(14, 3)
MONEY = Numeric(12, 2)


# ---------------------- CATEGORY ----------------------
class StockCategory(Base):
    __tablename__ = "stock_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    name_nl: Mapped[Optional[str]] = mapped_column(String)
    name_fr: Mapped[Optional[str]] = mapped_column(String)
    name_en: Mapped[Optional[str]] = mapped_column(String)
    description: Mapped[Optional[str]] = mapped_column(Text)
    color: Mapped[Optional[str]] = mapped_column(String)
    icon: Mapped[Optional[str]] = mapped_column(String)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    products: Mapped[List["StockProduct"]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<StockCategory {self.name!r}>"


# ---------------------- PRODUCT ----------------------
class StockProduct(Base):
    __tablename__ = "stock_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stock_categories.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    name_nl: Mapped[Optional[str]] = mapped_column(String)
    name_fr: Mapped[Optional[str]] = mapped_column(String)
    name_en: Mapped[Optional[str]] = mapped_column(String)
    description: Mapped[Optional[str]] = mapped_column(Text)
    sku: Mapped[Optional[str]] = mapped_column(String, unique=True)
    barcode: Mapped[Optional[str]] = mapped_column(String)
    unit: Mapped[str] = mapped_column(String, nullable=False, default="pcs")
    # written only by the transaction coordinator
    current_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=0)
    minimum_stock: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=0)
    maximum_stock: Mapped[Optional[Decimal]] = mapped_column(QUANTITY)
    reorder_point: Mapped[Optional[Decimal]] = mapped_column(QUANTITY)
    cost_price: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    storage_location: Mapped[Optional[str]] = mapped_column(String)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # bumped on every quantity change; the compare-and-swap key
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="ck_stock_products_quantity_nonneg"),
        CheckConstraint("minimum_stock >= 0", name="ck_stock_products_minimum_nonneg"),
        Index("ix_stock_products_category", "category_id"),
    )

    category: Mapped["StockCategory"] = relationship(back_populates="products")
    history: Mapped[List["StockHistory"]] = relationship(back_populates="product")

    def __repr__(self) -> str:
        return f"<StockProduct {self.sku} {self.name!r} qty={self.current_quantity}>"


# ---------------------- HISTORY (LEDGER) ----------------------
class StockHistory(Base):
    __tablename__ = "stock_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stock_products.id"), nullable=False
    )
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    quantity_change: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    previous_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    new_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    total_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 5))
    reference_number: Mapped[Optional[str]] = mapped_column(String)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    performed_by: Mapped[Optional[str]] = mapped_column(String)
    transaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    # Column name is 'metadata' in DB, but we avoid clashing with Base.metadata
    meta_json: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint(
            "transaction_type in ('IN','OUT','ADJUSTMENT','WASTE','TRANSFER')",
            name="ck_stock_history_type",
        ),
        CheckConstraint("new_quantity >= 0", name="ck_stock_history_new_nonneg"),
        # exact only on numeric storage; sqlite keeps floats
        CheckConstraint(
            "previous_quantity + quantity_change = new_quantity",
            name="ck_stock_history_reconciles",
        ).ddl_if(dialect="postgresql"),
        Index("ix_stock_history_product_date", "product_id", "transaction_date"),
        Index("ix_stock_history_recent", "transaction_date"),
    )

    product: Mapped["StockProduct"] = relationship(back_populates="history")

    def __repr__(self) -> str:
        return (
            f"<StockHistory {self.transaction_type} product={self.product_id} "
            f"{self.previous_quantity}{self.quantity_change:+}={self.new_quantity}>"
        )


# Ledger rows are append-only. Postgres enforces it regardless of the caller.
APPEND_ONLY_SQL = """
CREATE OR REPLACE FUNCTION stock_history_append_only() RETURNS trigger AS $$
BEGIN
    RAISE EXCEPTION 'stock_history rows are append-only';
END;
$$ LANGUAGE plpgsql;

CREATE TRIGGER trg_stock_history_append_only
    BEFORE UPDATE OR DELETE ON stock_history
    FOR EACH ROW EXECUTE FUNCTION stock_history_append_only();
"""

event.listen(
    StockHistory.__table__,
    "after_create",
    DDL(APPEND_ONLY_SQL).execute_if(dialect="postgresql"),
)
