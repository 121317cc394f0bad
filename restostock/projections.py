# restostock/projections.py
"""Read-only dashboard views over products and the ledger.

Recomputed on every call; nothing here writes.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from .tables import StockCategory, StockHistory, StockProduct

ZERO = Decimal("0")


def is_out_of_stock(product: Mapping) -> bool:
    return product["current_quantity"] == 0


def is_low_stock(product: Mapping) -> bool:
    return 0 < product["current_quantity"] <= product["minimum_stock"]


def stock_value(products: Iterable[Mapping]) -> Decimal:
    return sum(
        (Decimal(p["current_quantity"]) * Decimal(p["cost_price"] or 0) for p in products),
        ZERO,
    )


def summarize(products: list[Mapping]) -> dict:
    return {
        "total_products": len(products),
        "out_of_stock": sum(1 for p in products if is_out_of_stock(p)),
        "low_stock": sum(1 for p in products if is_low_stock(p)),
        "total_value": stock_value(products),
    }


_PRODUCT_STATUS_COLUMNS = (
    StockProduct.id,
    StockProduct.name,
    StockProduct.unit,
    StockProduct.category_id,
    StockProduct.current_quantity,
    StockProduct.minimum_stock,
    StockProduct.cost_price,
)


def stock_summary(conn: Connection, now: datetime) -> dict:
    products = conn.execute(select(*_PRODUCT_STATUS_COLUMNS)).mappings().all()
    total_categories = conn.execute(
        select(func.count()).select_from(StockCategory).where(StockCategory.is_active.is_(True))
    ).scalar_one()
    recent = conn.execute(
        select(func.count())
        .select_from(StockHistory)
        .where(StockHistory.transaction_date >= now - timedelta(hours=24))
    ).scalar_one()

    summary = summarize(products)
    return {
        "total_products": summary["total_products"],
        "total_categories": total_categories,
        "out_of_stock": summary["out_of_stock"],
        "low_stock": summary["low_stock"],
        "total_value": summary["total_value"],
        "recent_transactions": recent,
    }


def category_summaries(conn: Connection, category_id=None) -> list[dict]:
    categories_q = (
        select(StockCategory.id, StockCategory.name)
        .where(StockCategory.is_active.is_(True))
        .order_by(StockCategory.sort_order, StockCategory.name)
    )
    products_q = select(*_PRODUCT_STATUS_COLUMNS)
    if category_id is not None:
        categories_q = categories_q.where(StockCategory.id == category_id)
        products_q = products_q.where(StockProduct.category_id == category_id)
    categories = conn.execute(categories_q).mappings().all()
    products = conn.execute(products_q).mappings().all()

    by_category: dict = {}
    for p in products:
        by_category.setdefault(p["category_id"], []).append(p)

    out = []
    for c in categories:
        summary = summarize(by_category.get(c["id"], []))
        out.append({"category_id": c["id"], "category_name": c["name"], **summary})
    return out


def category_summary(conn: Connection, category_id) -> Optional[dict]:
    """One active category's entry from category_summaries, or None."""
    found = category_summaries(conn, category_id)
    return found[0] if found else None


def _status_item(row: Mapping, category_names: Mapping) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "category": category_names.get(row["category_id"]),
        "quantity": row["current_quantity"],
        "unit": row["unit"],
        "minimum_stock": row["minimum_stock"],
    }


def stock_status(conn: Connection) -> dict:
    category_names = dict(conn.execute(select(StockCategory.id, StockCategory.name)).all())
    products = conn.execute(
        select(*_PRODUCT_STATUS_COLUMNS).order_by(StockProduct.name)
    ).mappings().all()
    return {
        "out_of_stock": [_status_item(p, category_names) for p in products if is_out_of_stock(p)],
        "low_stock": [_status_item(p, category_names) for p in products if is_low_stock(p)],
    }


def recent_activity(entries: list[dict]) -> list[dict]:
    """Flatten joined ledger entries for the dashboard feed."""
    return [
        {
            "id": e["id"],
            "type": e["transaction_type"],
            "product_name": e["product"]["name"],
            "quantity_change": e["quantity_change"],
            "unit": e["product"]["unit"] or "pcs",
            "performed_by": e["performed_by"],
            "transaction_date": e["transaction_date"],
            "notes": e["notes"],
        }
        for e in entries
    ]
