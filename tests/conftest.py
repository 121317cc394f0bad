"""
Pytest fixtures for the stock service.

Each test gets its own file-backed SQLite database so that worker threads
in the concurrency tests see the same data through separate connections.
Timestamps come from a ticking clock, one second per reading, so ledger
ordering is deterministic.
"""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert, select

from restostock.coordinator import TransactionCoordinator
from restostock.core.config import Settings
from restostock.db import create_db_engine
from restostock.main import create_app
from restostock.models import Base
from restostock.tables import StockCategory, StockHistory, StockProduct


class TickingClock:
    def __init__(self, start=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'stock.db'}",
        DB_TIMEOUT_SECONDS=5.0,
        LEDGER_MAX_CONFLICT_RETRIES=3,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def engine(test_settings):
    engine = create_db_engine(test_settings)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def coordinator(engine, clock):
    return TransactionCoordinator(engine, clock=clock, timeout=5.0, max_conflict_retries=3)


@pytest.fixture
def category_id(engine):
    cid = uuid.uuid4()
    with engine.begin() as conn:
        conn.execute(insert(StockCategory).values(id=cid, name="Vegetables"))
    return cid


@pytest.fixture
def make_product(engine, category_id):
    def _make(quantity=10, minimum_stock=5, cost_price=None, name="Tomatoes", unit="kg", sku=None):
        pid = uuid.uuid4()
        with engine.begin() as conn:
            conn.execute(
                insert(StockProduct).values(
                    id=pid,
                    category_id=category_id,
                    name=name,
                    unit=unit,
                    sku=sku,
                    current_quantity=Decimal(str(quantity)),
                    minimum_stock=Decimal(str(minimum_stock)),
                    cost_price=None if cost_price is None else Decimal(str(cost_price)),
                )
            )
        return pid

    return _make


@pytest.fixture
def client(test_settings, engine, clock):
    app = create_app(test_settings, engine=engine, clock=clock)
    with TestClient(app) as c:
        yield c


# ---------------------- helpers ----------------------
def current_quantity(engine, product_id) -> Decimal:
    with engine.connect() as conn:
        return conn.execute(
            select(StockProduct.current_quantity).where(StockProduct.id == product_id)
        ).scalar_one()


def product_version(engine, product_id) -> int:
    with engine.connect() as conn:
        return conn.execute(
            select(StockProduct.version).where(StockProduct.id == product_id)
        ).scalar_one()


def ledger_rows(engine, product_id) -> list:
    """Oldest first."""
    with engine.connect() as conn:
        return conn.execute(
            select(
                StockHistory.transaction_type,
                StockHistory.quantity_change,
                StockHistory.previous_quantity,
                StockHistory.new_quantity,
                StockHistory.total_cost,
            )
            .where(StockHistory.product_id == product_id)
            .order_by(StockHistory.transaction_date)
        ).mappings().all()
