"""
Read-only reports, computed on request. Sales and inventory are also available as PDF.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Response

from bookledger.dependencies import get_pdf_generator, get_reports
from bookledger.schemas.reports import (
    DateRange,
    FinanceReport,
    InventoryReport,
    ReportFilters,
    SalesReport,
    StudentReport,
    SupplierReport,
    SupplierStatement,
)
from bookledger.services import ReportEngine
from bookledger.utils.pdf_reports import PDFReportGenerator

router = APIRouter(prefix="/reports", tags=["reports"])


def date_range(start_date: Optional[date] = None, end_date: Optional[date] = None) -> DateRange:
    return DateRange(start=start_date, end=end_date)


def report_filters(
    class_level: Optional[str] = None,
    subject: Optional[str] = None,
    student_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
) -> ReportFilters:
    return ReportFilters(class_level=class_level, subject=subject, student_id=student_id, supplier_id=supplier_id)


def _pdf(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# ====================
# SALES
# ====================

@router.get("/sales", response_model=SalesReport)
def sales_report(
    period: DateRange = Depends(date_range),
    filters: ReportFilters = Depends(report_filters),
    reports: ReportEngine = Depends(get_reports),
):
    return reports.sales_report(period, filters)


@router.get("/sales.pdf")
def sales_report_pdf(
    period: DateRange = Depends(date_range),
    filters: ReportFilters = Depends(report_filters),
    reports: ReportEngine = Depends(get_reports),
    pdf: PDFReportGenerator = Depends(get_pdf_generator),
):
    report = reports.sales_report(period, filters)
    return _pdf(pdf.generate_sales_report(report), "sales_report.pdf")


# ====================
# INVENTORY
# ====================

@router.get("/inventory", response_model=InventoryReport)
def inventory_report(
    low_stock: bool = False,
    filters: ReportFilters = Depends(report_filters),
    reports: ReportEngine = Depends(get_reports),
):
    return reports.inventory_report(filters, low_stock_only=low_stock)


@router.get("/inventory.pdf")
def inventory_report_pdf(
    low_stock: bool = False,
    filters: ReportFilters = Depends(report_filters),
    reports: ReportEngine = Depends(get_reports),
    pdf: PDFReportGenerator = Depends(get_pdf_generator),
):
    report = reports.inventory_report(filters, low_stock_only=low_stock)
    return _pdf(pdf.generate_inventory_report(report), "inventory_report.pdf")


# ====================
# SUPPLIERS / FINANCE / STUDENTS
# ====================

@router.get("/suppliers", response_model=SupplierReport)
def supplier_report(
    period: DateRange = Depends(date_range),
    filters: ReportFilters = Depends(report_filters),
    reports: ReportEngine = Depends(get_reports),
):
    """Supplier performance; the rating is a placeholder heuristic"""
    return reports.supplier_report(period, filters)


@router.get("/suppliers/{supplier_id}/statement", response_model=SupplierStatement)
def supplier_statement(supplier_id: int, reports: ReportEngine = Depends(get_reports)):
    return reports.supplier_statement(supplier_id)


@router.get("/finance", response_model=FinanceReport)
def finance_report(period: DateRange = Depends(date_range), reports: ReportEngine = Depends(get_reports)):
    return reports.finance_report(period)


@router.get("/students", response_model=StudentReport)
def student_report(
    period: DateRange = Depends(date_range),
    filters: ReportFilters = Depends(report_filters),
    reports: ReportEngine = Depends(get_reports),
):
    return reports.student_report(period, filters)
