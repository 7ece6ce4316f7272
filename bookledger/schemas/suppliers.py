"""
Supplier-side records. These tables belong to the procurement workflow; the
ledger core only reads them.
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SupplyOrderStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class SupplierRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime


class SupplyOrderRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    supplier_id: Optional[int]
    invoice_number: Optional[str] = None
    total_amount: Decimal
    status: SupplyOrderStatus
    supply_date: date
    expected_payment_date: Optional[date] = None


class SupplierPaymentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    supplier_id: Optional[int]
    amount: Decimal
    payment_method: str
    reference: Optional[str] = None
    payment_date: date
