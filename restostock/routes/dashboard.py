from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Engine

from .. import projections
from ..coordinator import TransactionCoordinator
from ..core.config import Settings
from ..deps import get_coordinator, get_engine, get_settings, ok, page_limit, read_connection

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def stock_summary(
    engine: Engine = Depends(get_engine),
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    with read_connection(engine, "dashboard data") as conn:
        summary = projections.stock_summary(conn, coordinator.clock())
    return ok(summary)


@router.get("/categories")
def category_summaries(engine: Engine = Depends(get_engine)):
    with read_connection(engine, "dashboard data") as conn:
        summaries = projections.category_summaries(conn)
    return ok(summaries, count=len(summaries))


@router.get("/stock-status")
def stock_status(engine: Engine = Depends(get_engine)):
    with read_connection(engine, "dashboard data") as conn:
        status = projections.stock_status(conn)
    return ok(status)


@router.get("/recent-activity")
def recent_activity(
    limit: Optional[int] = Query(default=None, ge=1),
    coordinator: TransactionCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
):
    entries = coordinator.get_recent(page_limit(limit, settings.ACTIVITY_DEFAULT_LIMIT, settings))
    activity = projections.recent_activity(entries)
    return ok(activity, count=len(activity))
