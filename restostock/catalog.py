# restostock/catalog.py
"""Category and product records. Quantities are not edited here after creation."""
from __future__ import annotations

import uuid

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .core.errors import ConflictError, NotFoundError, StorageFailure, ValidationError
from .core.logging_config import get_logger
from .tables import StockCategory, StockProduct

logger = get_logger("catalog")

_CATEGORY_FIELDS = (
    "id", "name", "name_nl", "name_fr", "name_en", "description",
    "color", "icon", "sort_order", "is_active", "created_at", "updated_at",
)
_PRODUCT_FIELDS = (
    "id", "category_id", "name", "name_nl", "name_fr", "name_en", "description",
    "sku", "barcode", "unit", "current_quantity", "minimum_stock", "maximum_stock",
    "reorder_point", "cost_price", "storage_location", "is_active", "version",
    "created_at", "updated_at",
)


def _columns(table, fields):
    return [getattr(table, f) for f in fields]


def create_category(engine: Engine, data: dict) -> dict:
    category_id = uuid.uuid4()
    try:
        with engine.begin() as conn:
            conn.execute(insert(StockCategory).values(id=category_id, **data))
    except IntegrityError as exc:
        raise ConflictError("Category already exists") from exc
    except SQLAlchemyError as exc:
        logger.error("storage_failure", exc_info=True)
        raise StorageFailure(f"Failed to create category: {exc.__class__.__name__}") from exc
    logger.info("category_created", extra={"category_id": category_id})
    return get_category(engine, category_id)


def get_category(engine: Engine, category_id) -> dict:
    try:
        with engine.connect() as conn:
            row = conn.execute(
                select(*_columns(StockCategory, _CATEGORY_FIELDS))
                .where(StockCategory.id == category_id)
            ).mappings().first()
    except SQLAlchemyError as exc:
        raise StorageFailure(f"Failed to fetch category: {exc.__class__.__name__}") from exc
    if row is None:
        raise NotFoundError("Category not found", resource_id=category_id)
    return dict(row)


def create_product(engine: Engine, data: dict) -> dict:
    """Insert a product with its opening quantity.

    The opening quantity is the baseline the ledger reconciles against; every
    later change goes through the transaction coordinator.
    """
    product_id = uuid.uuid4()
    try:
        with engine.begin() as conn:
            category = conn.execute(
                select(StockCategory.id).where(StockCategory.id == data["category_id"])
            ).first()
            if category is None:
                raise ValidationError("Invalid category ID")
            conn.execute(insert(StockProduct).values(id=product_id, version=0, **data))
    except IntegrityError as exc:
        raise ConflictError("SKU already exists") from exc
    except SQLAlchemyError as exc:
        logger.error("storage_failure", exc_info=True)
        raise StorageFailure(f"Failed to create product: {exc.__class__.__name__}") from exc
    logger.info(
        "product_created",
        extra={"product_id": product_id, "opening_quantity": data.get("current_quantity")},
    )
    return get_product(engine, product_id)


def get_product(engine: Engine, product_id) -> dict:
    try:
        with engine.connect() as conn:
            row = conn.execute(
                select(*_columns(StockProduct, _PRODUCT_FIELDS))
                .where(StockProduct.id == product_id)
            ).mappings().first()
            if row is None:
                raise NotFoundError("Product not found", resource_id=product_id)
            category = conn.execute(
                select(*_columns(StockCategory, _CATEGORY_FIELDS))
                .where(StockCategory.id == row["category_id"])
            ).mappings().first()
    except SQLAlchemyError as exc:
        raise StorageFailure(f"Failed to fetch product: {exc.__class__.__name__}") from exc
    product = dict(row)
    product["category"] = dict(category) if category else None
    return product
