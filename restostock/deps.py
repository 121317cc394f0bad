from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .coordinator import TransactionCoordinator
from .core.config import Settings
from .core.errors import StorageFailure


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_coordinator(request: Request) -> TransactionCoordinator:
    return request.app.state.coordinator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


@contextmanager
def read_connection(engine: Engine, what: str) -> Iterator[Connection]:
    try:
        with engine.connect() as conn:
            yield conn
    except SQLAlchemyError as exc:
        raise StorageFailure(f"Failed to read {what}: {exc.__class__.__name__}") from exc


def page_limit(limit: Optional[int], default: int, settings: Settings) -> int:
    if limit is None:
        return default
    return min(limit, settings.MAX_PAGE_LIMIT)


def ok(data=None, message: Optional[str] = None, **extra) -> dict:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    body.update(extra)
    return body
