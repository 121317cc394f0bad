# restostock/routes/transactions.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..coordinator import TransactionCoordinator
from ..core.config import Settings
from ..core.errors import InvalidStateError
from ..deps import get_coordinator, get_settings, ok, page_limit
from ..schemas import AdjustmentIn, StockInIn, StockOutIn, TransactionIn, WasteIn

router = APIRouter(prefix="/transactions", tags=["transactions"])


def _insufficient(exc: InvalidStateError) -> InvalidStateError:
    return InvalidStateError(
        "Insufficient stock available",
        product_id=exc.product_id,
        current_quantity=exc.current_quantity,
        quantity_change=exc.quantity_change,
    )


@router.get("/recent")
def recent_transactions(
    limit: Optional[int] = Query(default=None, ge=1),
    coordinator: TransactionCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
):
    rows = coordinator.get_recent(page_limit(limit, settings.RECENT_DEFAULT_LIMIT, settings))
    return ok(rows, count=len(rows))


@router.post("", status_code=201)
def create_transaction(
    payload: TransactionIn,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    entry = coordinator.record_transaction(
        payload.product_id,
        payload.transaction_type,
        payload.quantity_change,
        unit_cost=payload.unit_cost,
        reference_number=payload.reference_number,
        notes=payload.notes,
        performed_by=payload.performed_by,
        metadata=payload.metadata,
    )
    return ok(entry, "Transaction recorded successfully")


@router.post("/stock-in", status_code=201)
def stock_in(payload: StockInIn, coordinator: TransactionCoordinator = Depends(get_coordinator)):
    entry = coordinator.stock_in(
        payload.product_id,
        payload.quantity,
        unit_cost=payload.unit_cost,
        reference_number=payload.reference_number,
        notes=payload.notes,
        performed_by=payload.performed_by,
    )
    return ok(entry, "Stock intake recorded successfully")


@router.post("/stock-out", status_code=201)
def stock_out(payload: StockOutIn, coordinator: TransactionCoordinator = Depends(get_coordinator)):
    try:
        entry = coordinator.stock_out(
            payload.product_id,
            payload.quantity,
            reference_number=payload.reference_number,
            notes=payload.notes,
            performed_by=payload.performed_by,
        )
    except InvalidStateError as exc:
        raise _insufficient(exc) from exc
    return ok(entry, "Stock usage recorded successfully")


@router.post("/waste", status_code=201)
def record_waste(payload: WasteIn, coordinator: TransactionCoordinator = Depends(get_coordinator)):
    try:
        entry = coordinator.record_waste(
            payload.product_id,
            payload.quantity,
            reason=payload.reason,
            performed_by=payload.performed_by,
        )
    except InvalidStateError as exc:
        raise _insufficient(exc) from exc
    return ok(entry, "Waste recorded successfully")


@router.post("/adjustment", status_code=201)
def record_adjustment(payload: AdjustmentIn, coordinator: TransactionCoordinator = Depends(get_coordinator)):
    entry = coordinator.record_adjustment(
        payload.product_id,
        payload.quantity_change,
        reason=payload.reason,
        performed_by=payload.performed_by,
    )
    return ok(entry, "Stock adjustment recorded successfully")
