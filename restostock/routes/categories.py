import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from .. import catalog, projections
from ..core.errors import NotFoundError
from ..deps import get_engine, ok, read_connection
from ..schemas import CategoryIn

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post("", status_code=201)
def create_category(payload: CategoryIn, engine: Engine = Depends(get_engine)):
    category = catalog.create_category(engine, payload.model_dump())
    return ok(category, "Category created successfully")


@router.get("/{category_id}")
def get_category(category_id: uuid.UUID, engine: Engine = Depends(get_engine)):
    return ok(catalog.get_category(engine, category_id))


@router.get("/{category_id}/summary")
def get_category_summary(category_id: uuid.UUID, engine: Engine = Depends(get_engine)):
    with read_connection(engine, "category summary") as conn:
        summary = projections.category_summary(conn, category_id)
    if summary is None:
        raise NotFoundError("Category not found", resource_id=category_id)
    return ok(summary)
