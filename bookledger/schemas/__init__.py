"""
Pydantic schemas and typed records for the stock ledger.
"""
from bookledger.schemas.common import Page
from bookledger.schemas.inventory import (
    ChangeType,
    ItemCreate,
    ItemFilters,
    ItemRecord,
    ItemUpdate,
    LedgerEntryRecord,
    ReconciliationRecord,
    StockAdjustmentCreate,
    StockAdjustmentResult,
    StockAlert,
    StockStatus,
)
from bookledger.schemas.purchases import (
    PurchaseCreate,
    PurchaseDetail,
    PurchaseFilters,
    PurchaseRecord,
    PurchaseUpdate,
)
from bookledger.schemas.reports import DateRange, ReportFilters
from bookledger.schemas.students import StudentCreate, StudentRecord

__all__ = [
    "Page",
    "ChangeType",
    "ItemCreate",
    "ItemFilters",
    "ItemRecord",
    "ItemUpdate",
    "LedgerEntryRecord",
    "ReconciliationRecord",
    "StockAdjustmentCreate",
    "StockAdjustmentResult",
    "StockAlert",
    "StockStatus",
    "PurchaseCreate",
    "PurchaseDetail",
    "PurchaseFilters",
    "PurchaseRecord",
    "PurchaseUpdate",
    "DateRange",
    "ReportFilters",
    "StudentCreate",
    "StudentRecord",
]
