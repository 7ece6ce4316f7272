from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PurchaseCreate(BaseModel):
    student_id: int = Field(..., gt=0)
    item_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class PurchaseUpdate(BaseModel):
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    item_id: Optional[int] = Field(None, gt=0)
    student_id: Optional[int] = Field(None, gt=0)


class PurchaseRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: Optional[int]
    item_id: int
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    receipt_number: str
    created_at: datetime
    updated_at: datetime


class ItemSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    class_level: str
    subject: str
    unit_cost: Decimal


class StudentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_code: str
    name: str
    class_level: str


class PurchaseDetail(PurchaseRecord):
    item: Optional[ItemSummary] = None
    student: Optional[StudentSummary] = None


class PurchaseFilters(BaseModel):
    student_id: Optional[int] = None
    item_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None
