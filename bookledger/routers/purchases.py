"""
Student purchases. Every create, update and delete moves stock and writes the ledger.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from bookledger.dependencies import get_pdf_generator, get_transactions
from bookledger.schemas.common import Page
from bookledger.schemas.purchases import (
    PurchaseCreate,
    PurchaseDetail,
    PurchaseFilters,
    PurchaseRecord,
    PurchaseUpdate,
)
from bookledger.services import TransactionManager
from bookledger.utils.pdf_reports import PDFReportGenerator

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.post("", response_model=PurchaseRecord, status_code=status.HTTP_201_CREATED)
def create_purchase(purchase: PurchaseCreate, transactions: TransactionManager = Depends(get_transactions)):
    return transactions.create_purchase(
        purchase.student_id, purchase.item_id, purchase.quantity, purchase.unit_price
    )


@router.get("", response_model=Page[PurchaseDetail])
def list_purchases(
    student_id: Optional[int] = None,
    item_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    transactions: TransactionManager = Depends(get_transactions),
):
    """Purchases with item and student summaries, newest first"""
    filters = PurchaseFilters(
        student_id=student_id,
        item_id=item_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return transactions.list_purchases(filters, page=page, limit=limit)


@router.get("/{purchase_id}", response_model=PurchaseDetail)
def get_purchase(purchase_id: int, transactions: TransactionManager = Depends(get_transactions)):
    return transactions.get_purchase(purchase_id)


@router.put("/{purchase_id}", response_model=PurchaseRecord)
def update_purchase(
    purchase_id: int,
    changes: PurchaseUpdate,
    transactions: TransactionManager = Depends(get_transactions),
):
    return transactions.update_purchase(
        purchase_id,
        changes.quantity,
        changes.unit_price,
        item_id=changes.item_id,
        student_id=changes.student_id,
    )


@router.delete("/{purchase_id}", response_model=PurchaseRecord)
def delete_purchase(purchase_id: int, transactions: TransactionManager = Depends(get_transactions)):
    """Delete a purchase; the stock comes back and the reversal stays in the ledger"""
    return transactions.delete_purchase(purchase_id)


@router.get("/{purchase_id}/receipt.pdf")
def purchase_receipt(
    purchase_id: int,
    transactions: TransactionManager = Depends(get_transactions),
    pdf: PDFReportGenerator = Depends(get_pdf_generator),
):
    purchase = transactions.get_purchase(purchase_id)
    return Response(
        content=pdf.generate_receipt(purchase),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={purchase.receipt_number}.pdf"},
    )
