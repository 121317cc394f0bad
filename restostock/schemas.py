# restostock/schemas.py
import uuid
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .ledger import TransactionType


class _Body(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


# ---------------------- TRANSACTIONS ----------------------
class TransactionIn(_Body):
    product_id: uuid.UUID
    transaction_type: TransactionType
    quantity_change: Decimal = Field(max_digits=14, decimal_places=3, allow_inf_nan=False)
    unit_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class StockInIn(_Body):
    product_id: uuid.UUID
    quantity: Decimal = Field(gt=0, max_digits=14, decimal_places=3, allow_inf_nan=False)
    unit_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None


class StockOutIn(_Body):
    product_id: uuid.UUID
    quantity: Decimal = Field(gt=0, max_digits=14, decimal_places=3, allow_inf_nan=False)
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None


class WasteIn(_Body):
    product_id: uuid.UUID
    quantity: Decimal = Field(gt=0, max_digits=14, decimal_places=3, allow_inf_nan=False)
    reason: Optional[str] = None
    performed_by: Optional[str] = None


class AdjustmentIn(_Body):
    product_id: uuid.UUID
    quantity_change: Decimal = Field(max_digits=14, decimal_places=3, allow_inf_nan=False)
    reason: Optional[str] = None
    performed_by: Optional[str] = None


# ---------------------- PRODUCT-SCOPED ----------------------
class ProductAdjustIn(_Body):
    quantity_change: Decimal = Field(max_digits=14, decimal_places=3, allow_inf_nan=False)
    reason: Optional[str] = None
    performed_by: Optional[str] = None


class QuantityCountIn(_Body):
    quantity: Decimal = Field(ge=0, max_digits=14, decimal_places=3, allow_inf_nan=False)
    reason: Optional[str] = None
    performed_by: Optional[str] = None


# ---------------------- CATALOG ----------------------
class CategoryIn(_Body):
    name: str = Field(min_length=1)
    name_nl: Optional[str] = None
    name_fr: Optional[str] = None
    name_en: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    sort_order: int = 0


class ProductIn(_Body):
    category_id: uuid.UUID
    name: str = Field(min_length=1)
    name_nl: Optional[str] = None
    name_fr: Optional[str] = None
    name_en: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    unit: str = Field(min_length=1)
    current_quantity: Decimal = Field(
        default=Decimal("0"), ge=0, max_digits=14, decimal_places=3, allow_inf_nan=False
    )
    minimum_stock: Decimal = Field(
        default=Decimal("0"), ge=0, max_digits=14, decimal_places=3, allow_inf_nan=False
    )
    maximum_stock: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=3)
    reorder_point: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=3)
    cost_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    storage_location: Optional[str] = None
