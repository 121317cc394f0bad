"""Ledger entry construction.

Turns a transaction request into the immutable row that is appended to
``stock_history``. Everything here is a pure function of its arguments; the
caller supplies the current quantity and the clock reading.
"""
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from .core.errors import ValidationError

# Mirrors the stock_products / stock_history column types:
# quantities Numeric(14,3), prices Numeric(12,2), total_cost Numeric(18,5).
QUANTITY_PLACES = 3
QUANTITY_LIMIT = Decimal(10) ** 11
MONEY_PLACES = 2
MONEY_LIMIT = Decimal(10) ** 10
TOTAL_COST_LIMIT = Decimal(10) ** 13


class TransactionType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"
    WASTE = "WASTE"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True)
class TransactionRequest:
    product_id: uuid.UUID
    transaction_type: TransactionType
    quantity_change: Decimal
    unit_cost: Optional[Decimal] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class LedgerEntry:
    id: uuid.UUID
    product_id: uuid.UUID
    transaction_type: TransactionType
    quantity_change: Decimal
    previous_quantity: Decimal
    new_quantity: Decimal
    unit_cost: Optional[Decimal]
    total_cost: Optional[Decimal]
    reference_number: Optional[str]
    notes: Optional[str]
    performed_by: Optional[str]
    transaction_date: datetime
    metadata: dict

    def as_row(self) -> dict:
        """Column values for an insert into stock_history."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "transaction_type": self.transaction_type.value,
            "quantity_change": self.quantity_change,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "unit_cost": self.unit_cost,
            "total_cost": self.total_cost,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "performed_by": self.performed_by,
            "transaction_date": self.transaction_date,
            "meta_json": self.metadata,
        }


def to_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # floats go through str() so 0.1 stays 0.1
            result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"{field_name} must be a number") from None
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return result


def fit_scale(value: Decimal, field_name: str, places: int, limit: Decimal) -> Decimal:
    """Reject values the column would round or overflow; return them at column scale."""
    if abs(value) >= limit:
        raise ValidationError(f"{field_name} is out of range")
    quantized = value.quantize(Decimal(1).scaleb(-places))
    if quantized != value:
        raise ValidationError(f"{field_name} allows at most {places} decimal places")
    return quantized


def to_quantity(value: Any, field_name: str) -> Decimal:
    return fit_scale(to_decimal(value, field_name), field_name, QUANTITY_PLACES, QUANTITY_LIMIT)


def to_money(value: Any, field_name: str) -> Decimal:
    return fit_scale(to_decimal(value, field_name), field_name, MONEY_PLACES, MONEY_LIMIT)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def make_request(
    product_id,
    transaction_type,
    quantity_change,
    unit_cost=None,
    reference_number: Optional[str] = None,
    notes: Optional[str] = None,
    performed_by: Optional[str] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> TransactionRequest:
    """Validate and normalize caller input into a TransactionRequest."""
    if product_id is None or product_id == "":
        raise ValidationError("Product ID is required")
    if not isinstance(product_id, uuid.UUID):
        try:
            product_id = uuid.UUID(str(product_id))
        except ValueError:
            raise ValidationError("Product ID must be a UUID") from None

    if transaction_type is None or transaction_type == "":
        raise ValidationError("Transaction type is required")
    try:
        transaction_type = TransactionType(transaction_type)
    except ValueError:
        raise ValidationError("Invalid transaction type") from None

    if quantity_change is None:
        raise ValidationError("Quantity change must be a number")
    quantity_change = to_quantity(quantity_change, "Quantity change")

    if unit_cost is not None:
        unit_cost = to_money(unit_cost, "Unit cost")
        if unit_cost < 0:
            raise ValidationError("Unit cost cannot be negative")

    if metadata is None:
        metadata = {}
    elif not isinstance(metadata, Mapping):
        raise ValidationError("Metadata must be an object")

    return TransactionRequest(
        product_id=product_id,
        transaction_type=transaction_type,
        quantity_change=quantity_change,
        unit_cost=unit_cost,
        reference_number=_clean_text(reference_number),
        notes=_clean_text(notes),
        performed_by=_clean_text(performed_by),
        metadata=dict(metadata),
    )


def total_cost(unit_cost: Optional[Decimal], quantity_change: Decimal) -> Optional[Decimal]:
    if unit_cost is None:
        return None
    return unit_cost * abs(quantity_change)


def build_entry(
    request: TransactionRequest,
    previous_quantity: Decimal,
    now: datetime,
    entry_id: Optional[uuid.UUID] = None,
) -> LedgerEntry:
    """Stamp a request against the quantity it applies to.

    The negative-quantity guard belongs to the coordinator; this only derives
    the after-quantity and the total cost, and rejects results the ledger
    columns cannot hold exactly.
    """
    previous_quantity = Decimal(previous_quantity)
    new_quantity = previous_quantity + request.quantity_change
    if abs(new_quantity) >= QUANTITY_LIMIT:
        raise ValidationError("Resulting quantity is out of range")
    cost = total_cost(request.unit_cost, request.quantity_change)
    if cost is not None and cost >= TOTAL_COST_LIMIT:
        raise ValidationError("Total cost is out of range")

    return LedgerEntry(
        id=entry_id or uuid.uuid4(),
        product_id=request.product_id,
        transaction_type=request.transaction_type,
        quantity_change=request.quantity_change,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        unit_cost=request.unit_cost,
        total_cost=cost,
        reference_number=request.reference_number,
        notes=request.notes,
        performed_by=request.performed_by,
        transaction_date=now,
        metadata=dict(request.metadata),
    )
