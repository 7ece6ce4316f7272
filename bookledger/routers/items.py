"""
Catalog items, their ledger history and stock adjustments.
Stock is never edited directly: PATCH only touches details, adjustments go through the ledger.
"""
import csv
import io
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from bookledger.dependencies import get_catalog, get_transactions
from bookledger.schemas.common import Page
from bookledger.schemas.inventory import (
    ItemCreate,
    ItemFilters,
    ItemRecord,
    ItemUpdate,
    LedgerEntryRecord,
    ReconciliationRecord,
    StockAdjustmentCreate,
    StockAdjustmentResult,
    StockAlert,
)
from bookledger.services import CatalogService, TransactionManager

router = APIRouter(prefix="/items", tags=["items"])


# ====================
# CATALOG
# ====================

@router.post("", response_model=ItemRecord, status_code=status.HTTP_201_CREATED)
def create_item(item: ItemCreate, catalog: CatalogService = Depends(get_catalog)):
    """Create a catalog item; its opening stock is the base of the ledger"""
    return catalog.create_item(item)


@router.get("", response_model=Page[ItemRecord])
def list_items(
    class_level: Optional[str] = None,
    subject: Optional[str] = None,
    supplier_name: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    catalog: CatalogService = Depends(get_catalog),
):
    filters = ItemFilters(class_level=class_level, subject=subject, supplier_name=supplier_name, search=search)
    return catalog.list_items(filters, page=page, limit=limit)


@router.get("/alerts", response_model=List[StockAlert])
def stock_alerts(catalog: CatalogService = Depends(get_catalog)):
    return catalog.stock_alerts()


@router.get("/reconciliation", response_model=List[ReconciliationRecord])
def reconcile_all(transactions: TransactionManager = Depends(get_transactions)):
    """Check stock against opening stock plus ledger for every item"""
    return transactions.reconcile_all()


@router.get("/{item_id}", response_model=ItemRecord)
def get_item(item_id: int, catalog: CatalogService = Depends(get_catalog)):
    return catalog.get_item(item_id)


@router.patch("/{item_id}", response_model=ItemRecord)
def update_item(item_id: int, changes: ItemUpdate, catalog: CatalogService = Depends(get_catalog)):
    return catalog.update_item(item_id, changes)


# ====================
# LEDGER
# ====================

@router.get("/{item_id}/ledger", response_model=List[LedgerEntryRecord])
def item_ledger(
    item_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    transactions: TransactionManager = Depends(get_transactions),
):
    return transactions.item_ledger(item_id, start_date, end_date)


@router.get("/{item_id}/ledger.csv")
def export_item_ledger(
    item_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    transactions: TransactionManager = Depends(get_transactions),
):
    entries = transactions.item_ledger(item_id, start_date, end_date)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["ID", "Date", "Item ID", "Change", "Type", "Reason"])
    for entry in entries:
        writer.writerow([
            entry.id,
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.item_id,
            entry.delta_quantity,
            entry.change_type.value,
            entry.reason,
        ])
    output.seek(0)

    filename = f"ledger_item_{item_id}.csv"
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{item_id}/reconciliation", response_model=ReconciliationRecord)
def reconcile_item(item_id: int, transactions: TransactionManager = Depends(get_transactions)):
    return transactions.reconcile(item_id)


@router.post(
    "/{item_id}/adjustments",
    response_model=StockAdjustmentResult,
    status_code=status.HTTP_201_CREATED,
)
def adjust_stock(
    item_id: int,
    adjustment: StockAdjustmentCreate,
    transactions: TransactionManager = Depends(get_transactions),
):
    """Manual correction or supply receipt; appends one ledger entry"""
    return transactions.adjust_stock(item_id, adjustment.delta, adjustment.reason, adjustment.change_type)
