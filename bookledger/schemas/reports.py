"""
Report schemas. Every report is computed on demand from current state.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from bookledger.schemas.inventory import ItemRecord


class DateRange(BaseModel):
    """Inclusive on both ends; either end may be open."""

    start: Optional[date] = None
    end: Optional[date] = None


class ReportFilters(BaseModel):
    class_level: Optional[str] = None
    subject: Optional[str] = None
    student_id: Optional[int] = None
    supplier_id: Optional[int] = None


# Sales
class ItemSalesRow(BaseModel):
    item_id: int
    title: Optional[str] = None
    quantity: int = 0
    revenue: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    purchase_count: int = 0


class StudentSalesRow(BaseModel):
    student_id: Optional[int] = None
    name: Optional[str] = None
    quantity: int = 0
    revenue: Decimal = Decimal("0")
    purchase_count: int = 0


class MonthlySalesRow(BaseModel):
    month: str  # YYYY-MM
    sales: Decimal = Decimal("0")
    transaction_count: int = 0
    profit: Decimal = Decimal("0")


class SalesReport(BaseModel):
    period: DateRange
    total_sales: Decimal
    total_quantity: int
    total_profit: Decimal
    purchase_count: int
    average_order_value: Decimal
    by_item: List[ItemSalesRow]
    by_student: List[StudentSalesRow]
    by_month: List[MonthlySalesRow]


# Inventory
class InventoryGroupRow(BaseModel):
    key: str
    book_count: int = 0
    stock: int = 0
    value: Decimal = Decimal("0")


class InventoryReport(BaseModel):
    low_stock_threshold: int
    total_items: int
    total_stock: int
    total_value: Decimal
    low_stock: List[ItemRecord]
    out_of_stock: List[ItemRecord]
    by_class_level: List[InventoryGroupRow]
    by_subject: List[InventoryGroupRow]


# Suppliers
class SupplierPerformanceRow(BaseModel):
    supplier_id: int
    name: str
    total_orders: int
    received_orders: int
    total_order_value: Decimal
    total_paid: Decimal
    outstanding: Decimal
    average_order_value: Decimal
    on_time_rate: float
    rating: float
    rating_is_placeholder: bool = True
    overdue_orders: int
    last_order_date: Optional[date] = None


class SupplierReport(BaseModel):
    period: DateRange
    suppliers: List[SupplierPerformanceRow]
    total_order_value: Decimal
    total_paid: Decimal
    total_outstanding: Decimal


class SupplierStatementLine(BaseModel):
    entry_date: date
    kind: str  # "order" or "payment"
    reference: Optional[str] = None
    amount: Decimal
    balance: Decimal


class SupplierStatement(BaseModel):
    supplier_id: int
    name: str
    lines: List[SupplierStatementLine]
    closing_balance: Decimal


# Finance
class ExpenseCategory(BaseModel):
    category: str
    amount: Decimal
    percentage_of_revenue: float


class FinanceReport(BaseModel):
    period: DateRange
    revenue: Decimal
    cogs: Decimal
    gross_profit: Decimal
    operating_expenses: Decimal
    net_profit: Decimal
    profit_margin: float
    expense_breakdown: List[ExpenseCategory] = Field(default_factory=list)


# Students
class StudentActivityRow(BaseModel):
    student_id: int
    student_code: str
    name: str
    class_level: str
    total_spent: Decimal = Decimal("0")
    total_books: int = 0
    purchase_count: int = 0


class ClassLevelActivityRow(BaseModel):
    class_level: str
    students: int = 0
    total_spent: Decimal = Decimal("0")
    total_books: int = 0
    active_students: int = 0


class StudentReport(BaseModel):
    period: DateRange
    total_students: int
    active_students: int
    total_spent: Decimal
    total_books: int
    average_spent: Decimal
    students: List[StudentActivityRow]
    by_class_level: List[ClassLevelActivityRow]
