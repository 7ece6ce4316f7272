"""
Catalog and ledger schemas:
- stock_quantity is read-only here; it changes only through the transaction manager
- ledger entries are append-only records
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChangeType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUST = "ADJUST"


class StockStatus(str, Enum):
    NORMAL = "NORMAL"
    LOW = "LOW"
    CRITICAL = "CRITICAL"


# Item Schemas
class ItemBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    class_level: str = Field(..., min_length=1, max_length=50)
    subject: str = Field(..., min_length=1, max_length=100)
    unit_price: Decimal = Field(..., ge=0)
    unit_cost: Decimal = Field(Decimal("0"), ge=0)
    min_stock: int = Field(0, ge=0)
    supplier_name: Optional[str] = Field(None, max_length=150)


class ItemCreate(ItemBase):
    opening_stock: int = Field(0, ge=0)


class ItemUpdate(BaseModel):
    # Stock is deliberately absent: use a stock adjustment instead
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    class_level: Optional[str] = Field(None, min_length=1, max_length=50)
    subject: Optional[str] = Field(None, min_length=1, max_length=100)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    unit_cost: Optional[Decimal] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    supplier_name: Optional[str] = Field(None, max_length=150)


class ItemRecord(ItemBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    stock_quantity: int
    opening_stock: int
    created_at: datetime
    updated_at: datetime


class ItemFilters(BaseModel):
    class_level: Optional[str] = None
    subject: Optional[str] = None
    supplier_name: Optional[str] = None
    search: Optional[str] = None


# Ledger Schemas (append-only)
class LedgerEntryRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    delta_quantity: int
    change_type: ChangeType
    reason: str
    created_at: datetime


class StockAdjustmentCreate(BaseModel):
    delta: int
    reason: str = Field(..., min_length=1, max_length=255)
    change_type: ChangeType = ChangeType.ADJUST

    @field_validator("delta")
    @classmethod
    def non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("delta must not be zero")
        return v


class StockAdjustmentResult(BaseModel):
    entry: LedgerEntryRecord
    stock_quantity: int


class ReconciliationRecord(BaseModel):
    item_id: int
    title: str
    opening_stock: int
    ledger_total: int
    expected_stock: int
    stock_quantity: int
    balanced: bool


class StockAlert(BaseModel):
    item_id: int
    title: str
    stock_quantity: int
    threshold: int
    level: StockStatus
    message: str
