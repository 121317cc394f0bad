"""Transaction coordinator: the only writer of ``current_quantity``.

Every quantity change is one database transaction that reads the product
row, appends a ledger entry and moves the product to the new quantity.
Either both writes commit or neither does.

Requests for the same product are serialized three ways: an in-process lock
per product, ``SELECT ... FOR UPDATE`` on Postgres, and a compare-and-swap
on ``stock_products.version`` for writers in other processes. Different
products never share a lock.
"""
from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterator, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .core.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    StorageFailure,
    ValidationError,
)
from .core.logging_config import get_logger
from .db import apply_statement_timeout
from .ledger import (
    LedgerEntry,
    TransactionRequest,
    TransactionType,
    build_entry,
    make_request,
    to_quantity,
)
from .tables import StockHistory, StockProduct

logger = get_logger("coordinator")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _VersionConflict(Exception):
    pass


class ProductLocks:
    """Lazily created per-product locks, dropped once nobody holds or waits."""

    def __init__(self):
        self._guard = threading.Lock()
        self._slots: dict = {}

    @contextmanager
    def hold(self, key, timeout: float) -> Iterator[None]:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = [threading.Lock(), 0]
            slot[1] += 1

        acquired = slot[0].acquire(timeout=timeout)
        try:
            if not acquired:
                raise StorageFailure(f"Timed out after {timeout}s waiting for product {key}")
            yield
        finally:
            if acquired:
                slot[0].release()
            with self._guard:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._slots[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)


HISTORY_COLUMNS = (
    StockHistory.id,
    StockHistory.product_id,
    StockHistory.transaction_type,
    StockHistory.quantity_change,
    StockHistory.previous_quantity,
    StockHistory.new_quantity,
    StockHistory.unit_cost,
    StockHistory.total_cost,
    StockHistory.reference_number,
    StockHistory.notes,
    StockHistory.performed_by,
    StockHistory.transaction_date,
    StockHistory.meta_json.label("metadata"),
)

HISTORY_KEYS = (
    "id",
    "product_id",
    "transaction_type",
    "quantity_change",
    "previous_quantity",
    "new_quantity",
    "unit_cost",
    "total_cost",
    "reference_number",
    "notes",
    "performed_by",
    "transaction_date",
    "metadata",
)

PRODUCT_SUMMARY_COLUMNS = (
    StockProduct.name,
    StockProduct.unit,
    StockProduct.sku,
    StockProduct.category_id,
)


def entry_payload(entry: LedgerEntry, product) -> dict:
    return {
        "id": entry.id,
        "product_id": entry.product_id,
        "transaction_type": entry.transaction_type.value,
        "quantity_change": entry.quantity_change,
        "previous_quantity": entry.previous_quantity,
        "new_quantity": entry.new_quantity,
        "unit_cost": entry.unit_cost,
        "total_cost": entry.total_cost,
        "reference_number": entry.reference_number,
        "notes": entry.notes,
        "performed_by": entry.performed_by,
        "transaction_date": entry.transaction_date,
        "metadata": entry.metadata,
        "product": {
            "id": entry.product_id,
            "name": product["name"],
            "unit": product["unit"],
            "sku": product["sku"],
            "category_id": product["category_id"],
        },
    }


def history_payload(row) -> dict:
    data = {key: row[key] for key in HISTORY_KEYS}
    data["metadata"] = data["metadata"] or {}
    data["product"] = {
        "id": row["product_id"],
        "name": row["name"],
        "unit": row["unit"],
        "sku": row["sku"],
        "category_id": row["category_id"],
    }
    return data


def _positive_quantity(quantity) -> Decimal:
    if quantity is None:
        raise ValidationError("Product ID and positive quantity are required")
    quantity = to_quantity(quantity, "Quantity")
    if quantity <= 0:
        raise ValidationError("Product ID and positive quantity are required")
    return quantity


class TransactionCoordinator:
    def __init__(
        self,
        engine: Engine,
        clock: Optional[Clock] = None,
        timeout: float = 5.0,
        max_conflict_retries: int = 3,
        locks: Optional[ProductLocks] = None,
    ):
        self.engine = engine
        self.clock = clock or utcnow
        self.timeout = timeout
        self.max_conflict_retries = max_conflict_retries
        self.locks = locks or ProductLocks()

    # ---------------------- WRITES ----------------------
    def record_transaction(
        self,
        product_id,
        transaction_type,
        quantity_change,
        unit_cost=None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
        performed_by: Optional[str] = None,
        metadata: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        """Apply a signed quantity change and append its ledger entry.

        Returns the committed entry joined with product summary fields.

        Raises:
            ValidationError: malformed request.
            NotFoundError: unknown product.
            InvalidStateError: the change would take the quantity below zero.
            ConflictError: constraint violation, or the product kept changing
                underneath us past the retry budget.
            StorageFailure: the database failed or timed out.
        """
        request = make_request(
            product_id,
            transaction_type,
            quantity_change,
            unit_cost=unit_cost,
            reference_number=reference_number,
            notes=notes,
            performed_by=performed_by,
            metadata=metadata,
        )
        return self._apply(request.product_id, lambda previous: request, timeout)

    def stock_in(self, product_id, quantity, unit_cost=None, reference_number=None,
                 notes=None, performed_by=None, timeout=None) -> dict:
        return self.record_transaction(
            product_id,
            TransactionType.IN,
            _positive_quantity(quantity),
            unit_cost=unit_cost,
            reference_number=reference_number,
            notes=notes or "Stock intake",
            performed_by=performed_by or "System",
            timeout=timeout,
        )

    def stock_out(self, product_id, quantity, reference_number=None, notes=None,
                  performed_by=None, timeout=None) -> dict:
        return self.record_transaction(
            product_id,
            TransactionType.OUT,
            -_positive_quantity(quantity),
            reference_number=reference_number,
            notes=notes or "Stock usage",
            performed_by=performed_by or "System",
            timeout=timeout,
        )

    def record_waste(self, product_id, quantity, reason=None, performed_by=None,
                     timeout=None) -> dict:
        return self.record_transaction(
            product_id,
            TransactionType.WASTE,
            -_positive_quantity(quantity),
            notes=reason or "Waste/spoilage",
            performed_by=performed_by or "System",
            timeout=timeout,
        )

    def record_adjustment(self, product_id, quantity_change, reason=None, performed_by=None,
                          timeout=None, default_reason="Stock adjustment") -> dict:
        if quantity_change is None:
            raise ValidationError("Product ID and quantity change are required")
        return self.record_transaction(
            product_id,
            TransactionType.ADJUSTMENT,
            quantity_change,
            notes=reason or default_reason,
            performed_by=performed_by or "System",
            timeout=timeout,
        )

    def set_quantity(self, product_id, quantity, reason=None, performed_by=None,
                     timeout=None) -> dict:
        """Bring a product to a counted quantity via an ADJUSTMENT entry.

        The delta is computed under the product lock, so a concurrent change
        cannot slip between the read and the write.
        """
        if quantity is None:
            raise ValidationError("Quantity must be a non-negative number")
        target = to_quantity(quantity, "Quantity")
        if target < 0:
            raise ValidationError("Quantity must be a non-negative number")
        template = make_request(
            product_id,
            TransactionType.ADJUSTMENT,
            0,
            notes=reason or "Stock count",
            performed_by=performed_by or "System",
            metadata={"counted_quantity": str(target)},
        )

        def build(previous: Decimal) -> TransactionRequest:
            return TransactionRequest(
                product_id=template.product_id,
                transaction_type=template.transaction_type,
                quantity_change=target - previous,
                notes=template.notes,
                performed_by=template.performed_by,
                metadata=template.metadata,
            )

        return self._apply(template.product_id, build, timeout)

    def _apply(self, product_id: uuid.UUID, build: Callable[[Decimal], TransactionRequest],
               timeout: Optional[float]) -> dict:
        timeout = self.timeout if timeout is None else timeout
        with self.locks.hold(product_id, timeout):
            for attempt in range(1, self.max_conflict_retries + 2):
                try:
                    return self._apply_once(product_id, build, timeout)
                except _VersionConflict:
                    logger.warning(
                        "version_conflict",
                        extra={"product_id": product_id, "attempt": attempt},
                    )
        raise ConflictError("Product was modified concurrently; please retry")

    def _apply_once(self, product_id, build, timeout) -> dict:
        try:
            with self.engine.begin() as conn:
                apply_statement_timeout(conn, timeout)
                product = conn.execute(
                    select(StockProduct.current_quantity, StockProduct.version,
                           *PRODUCT_SUMMARY_COLUMNS)
                    .where(StockProduct.id == product_id)
                    .with_for_update()
                ).mappings().first()
                if product is None:
                    raise NotFoundError("Product not found", resource_id=product_id)

                previous = product["current_quantity"]
                request = build(previous)
                if previous + request.quantity_change < 0:
                    logger.warning(
                        "transaction_rejected",
                        extra={
                            "product_id": product_id,
                            "transaction_type": request.transaction_type.value,
                            "current_quantity": previous,
                            "quantity_change": request.quantity_change,
                        },
                    )
                    raise InvalidStateError(
                        product_id=product_id,
                        current_quantity=previous,
                        quantity_change=request.quantity_change,
                    )

                entry = build_entry(request, previous, self.clock())
                row = entry.as_row()
                conn.execute(
                    insert(StockHistory).values(
                        {getattr(StockHistory, key): value for key, value in row.items()}
                    )
                )
                result = conn.execute(
                    update(StockProduct)
                    .where(StockProduct.id == product_id)
                    .where(StockProduct.version == product["version"])
                    .values(
                        current_quantity=entry.new_quantity,
                        version=StockProduct.version + 1,
                        updated_at=entry.transaction_date,
                    )
                )
                if result.rowcount != 1:
                    # rolls back the ledger insert with it
                    raise _VersionConflict()
        except IntegrityError as exc:
            logger.error("integrity_error", extra={"product_id": product_id}, exc_info=True)
            raise ConflictError(f"Constraint violation: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            logger.error("storage_failure", extra={"product_id": product_id}, exc_info=True)
            raise StorageFailure(f"Storage operation failed: {exc.__class__.__name__}") from exc

        logger.info(
            "transaction_recorded",
            extra={
                "entry_id": entry.id,
                "product_id": product_id,
                "transaction_type": entry.transaction_type.value,
                "previous_quantity": entry.previous_quantity,
                "quantity_change": entry.quantity_change,
                "new_quantity": entry.new_quantity,
            },
        )
        return entry_payload(entry, product)

    # ---------------------- READS ----------------------
    def get_history(self, product_id, limit: int = 50) -> list[dict]:
        """Most recent first. Unknown products raise NotFoundError."""
        product_id = _as_uuid(product_id)
        try:
            with self.engine.connect() as conn:
                exists = conn.execute(
                    select(StockProduct.id).where(StockProduct.id == product_id)
                ).first()
                if exists is None:
                    raise NotFoundError("Product not found", resource_id=product_id)
                rows = conn.execute(
                    _history_query()
                    .where(StockHistory.product_id == product_id)
                    .limit(limit)
                ).mappings().all()
        except SQLAlchemyError as exc:
            logger.error("storage_failure", extra={"product_id": product_id}, exc_info=True)
            raise StorageFailure(f"Storage operation failed: {exc.__class__.__name__}") from exc
        return [history_payload(row) for row in rows]

    def get_recent(self, limit: int = 20) -> list[dict]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(_history_query().limit(limit)).mappings().all()
        except SQLAlchemyError as exc:
            logger.error("storage_failure", exc_info=True)
            raise StorageFailure(f"Storage operation failed: {exc.__class__.__name__}") from exc
        return [history_payload(row) for row in rows]


def _history_query():
    return (
        select(*HISTORY_COLUMNS, *PRODUCT_SUMMARY_COLUMNS)
        .join(StockProduct, StockProduct.id == StockHistory.product_id)
        .order_by(StockHistory.transaction_date.desc(), StockHistory.id.desc())
    )


def _as_uuid(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError("Product ID must be a UUID") from None
