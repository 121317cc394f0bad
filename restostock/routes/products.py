# restostock/routes/products.py
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from .. import catalog
from ..coordinator import TransactionCoordinator
from ..core.config import Settings
from ..deps import get_coordinator, get_engine, get_settings, ok, page_limit
from ..schemas import ProductAdjustIn, ProductIn, QuantityCountIn

router = APIRouter(prefix="/products", tags=["products"])


@router.post("", status_code=201)
def create_product(payload: ProductIn, engine: Engine = Depends(get_engine)):
    product = catalog.create_product(engine, payload.model_dump())
    return ok(product, "Product created successfully")


@router.get("/{product_id}")
def get_product(product_id: uuid.UUID, engine: Engine = Depends(get_engine)):
    return ok(catalog.get_product(engine, product_id))


@router.get("/{product_id}/history")
def get_product_history(
    product_id: uuid.UUID,
    limit: Optional[int] = Query(default=None, ge=1),
    coordinator: TransactionCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
):
    history = coordinator.get_history(
        product_id, page_limit(limit, settings.HISTORY_DEFAULT_LIMIT, settings)
    )
    return ok(history, count=len(history))


@router.post("/{product_id}/adjust")
def adjust_quantity(
    product_id: uuid.UUID,
    payload: ProductAdjustIn,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    entry = coordinator.record_adjustment(
        product_id,
        payload.quantity_change,
        reason=payload.reason,
        performed_by=payload.performed_by,
        default_reason="Manual adjustment",
    )
    return ok(entry, "Product quantity adjusted successfully")


# Counted quantities are recorded as ADJUSTMENT entries, never written directly.
@router.post("/{product_id}/quantity")
def set_quantity(
    product_id: uuid.UUID,
    payload: QuantityCountIn,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    entry = coordinator.set_quantity(
        product_id,
        payload.quantity,
        reason=payload.reason,
        performed_by=payload.performed_by,
    )
    return ok(entry, "Product quantity updated successfully")
